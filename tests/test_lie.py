"""Tests for the rotation and rigid transform helpers."""

import numpy as np

from multibody_ik.lie import SE3, SO3, project_to_rotation_matrix, skew, vee


def test_skew_and_vee():
    x = np.array([0.3, -1.2, 2.0])
    y = np.array([1.0, 0.5, -0.4])
    np.testing.assert_allclose(skew(x) @ y, np.cross(x, y))
    np.testing.assert_allclose(vee(skew(x)), x)


def test_axis_angle_and_log():
    rotation = SO3.from_axis_angle(np.array([0.0, 0.0, 2.0]), 0.7)
    np.testing.assert_allclose(rotation.log(), [0.0, 0.0, 0.7], atol=1e-12)
    np.testing.assert_allclose(rotation.angle(), 0.7)
    np.testing.assert_allclose((rotation @ rotation.inverse()).as_matrix(), np.eye(3), atol=1e-12)


def test_matrix_round_trip():
    rotation = SO3.from_rpy(0.4, -0.3, 1.1)
    np.testing.assert_allclose(SO3.from_matrix(rotation.as_matrix()).as_matrix(), rotation.as_matrix())


def test_se3_composition():
    X_AB = SE3.from_rotation_and_translation(SO3.from_rpy(0.1, 0.2, 0.3), np.array([1.0, 2.0, 3.0]))
    X_BC = SE3.from_translation(np.array([0.5, 0.0, -0.5]))
    p_C = np.array([0.2, -0.1, 0.4])
    np.testing.assert_allclose((X_AB @ X_BC) @ p_C, X_AB @ (X_BC @ p_C))
    np.testing.assert_allclose(X_AB.inverse() @ (X_AB @ p_C), p_C)


def test_projection_to_rotation():
    noisy = SO3.from_rpy(0.2, 0.1, -0.5).as_matrix() + 0.05 * np.arange(9.0).reshape(3, 3) / 9.0
    R = project_to_rotation_matrix(noisy)
    np.testing.assert_allclose(R.T @ R, np.eye(3), atol=1e-12)
    assert np.linalg.det(R) > 0.0
    # Reflections project to proper rotations.
    R = project_to_rotation_matrix(np.diag([1.0, 1.0, -1.0]))
    assert np.linalg.det(R) > 0.0

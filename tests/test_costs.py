"""Tests for the kinematic costs."""

import numpy as np
import pytest

from multibody_ik import Configuration
from multibody_ik.costs import OrientationCost, PositionCost
from multibody_ik.exceptions import CostDefinitionError, InvalidFrame
from multibody_ik.lie import SO3

from .conftest import numerical_jacobian

Q_SPATIAL = np.array([0.3, -0.4, 0.7])


def test_position_cost_value(planar_arm):
    cost = PositionCost(
        planar_arm,
        "universe",
        np.array([1.0, 1.0, 0.0]),
        "tip",
        np.zeros(3),
        np.diag([2.0, 1.0, 1.0]),
        Configuration(planar_arm),
    )
    # Tip at (2, 0, 0): error (1, -1, 0).
    np.testing.assert_allclose(cost.eval([0.0, 0.0]), [3.0])
    np.testing.assert_allclose(cost.eval([np.pi / 2, -np.pi / 2]), [0.0], atol=1e-12)


def test_position_cost_gradient(spatial_arm):
    C = np.array([[2.0, 0.5, 0.0], [0.0, 1.0, 0.0], [0.3, 0.0, 3.0]])
    cost = PositionCost(
        spatial_arm,
        "link1",
        np.array([0.1, 0.2, 0.3]),
        "link3",
        np.array([0.2, 0.0, -0.1]),
        C,
        Configuration(spatial_arm),
    )
    _, dy = cost.eval_with_gradient(Q_SPATIAL)
    np.testing.assert_allclose(dy, numerical_jacobian(cost.eval, Q_SPATIAL), atol=1e-6)


def test_position_cost_rejects_bad_weight(planar_arm):
    with pytest.raises(CostDefinitionError):
        PositionCost(
            planar_arm, "universe", np.zeros(3), "tip", np.zeros(3), np.eye(2), Configuration(planar_arm)
        )


def test_orientation_cost_value(planar_arm):
    cost = OrientationCost(
        planar_arm, "universe", SO3.identity(), "link2", SO3.identity(), 2.0, Configuration(planar_arm)
    )
    np.testing.assert_allclose(cost.eval([0.0, 0.0]), [0.0], atol=1e-12)
    np.testing.assert_allclose(cost.eval([0.3, 0.4]), [2.0 * (1.0 - np.cos(0.7))], atol=1e-12)


def test_orientation_cost_gradient(spatial_arm):
    cost = OrientationCost(
        spatial_arm,
        "link1",
        SO3.from_rpy(0.2, 0.1, 0.0),
        "link3",
        SO3.from_rpy(0.0, 0.3, -0.4),
        1.5,
        Configuration(spatial_arm),
    )
    _, dy = cost.eval_with_gradient(Q_SPATIAL)
    np.testing.assert_allclose(dy, numerical_jacobian(cost.eval, Q_SPATIAL), atol=1e-6)


def test_orientation_cost_unknown_frame(planar_arm):
    with pytest.raises(InvalidFrame):
        OrientationCost(
            planar_arm, "nope", SO3.identity(), "link2", SO3.identity(), 1.0, Configuration(planar_arm)
        )

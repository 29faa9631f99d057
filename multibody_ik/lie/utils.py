"""Utility functions for Lie groups."""

import numpy as np


def skew(x: np.ndarray) -> np.ndarray:
    """Compute skew-symmetric matrix from 3D vector.

    Args:
        x: 3D vector.

    Returns:
        3x3 skew-symmetric matrix such that skew(x) @ y == cross(x, y).
    """
    assert x.shape == (3,), f"Expected 3D vector, got shape {x.shape}"
    wx, wy, wz = x
    return np.array(
        [
            [0.0, -wz, wy],
            [wz, 0.0, -wx],
            [-wy, wx, 0.0],
        ],
        dtype=x.dtype,
    )


def vee(matrix: np.ndarray) -> np.ndarray:
    """Inverse of skew, applied to the skew-symmetric part of a 3x3 matrix."""
    assert matrix.shape == (3, 3)
    return 0.5 * np.array(
        [
            matrix[2, 1] - matrix[1, 2],
            matrix[0, 2] - matrix[2, 0],
            matrix[1, 0] - matrix[0, 1],
        ]
    )


def project_to_rotation_matrix(matrix: np.ndarray) -> np.ndarray:
    """Nearest proper rotation matrix in the Frobenius norm.

    Args:
        matrix: Any 3x3 matrix.

    Returns:
        Rotation matrix R minimizing ||R - matrix||_F with det(R) = +1.
    """
    assert matrix.shape == (3, 3)
    U, _, Vt = np.linalg.svd(matrix)
    D = np.diag([1.0, 1.0, np.sign(np.linalg.det(U @ Vt)) or 1.0])
    return U @ D @ Vt

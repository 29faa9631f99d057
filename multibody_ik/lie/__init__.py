"""Lie group utilities."""

from .se3 import SE3
from .so3 import SO3
from .utils import project_to_rotation_matrix, skew, vee

__all__ = [
    "SE3",
    "SO3",
    "project_to_rotation_matrix",
    "skew",
    "vee",
]

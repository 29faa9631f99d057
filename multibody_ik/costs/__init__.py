"""Kinematic costs for inverse kinematics."""

from .kinematic_cost import KinematicCost
from .orientation_cost import OrientationCost
from .position_cost import PositionCost

__all__ = [
    "KinematicCost",
    "OrientationCost",
    "PositionCost",
]

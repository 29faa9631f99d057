"""Kinematic constraints for inverse kinematics."""

from .angle_between_vectors import AngleBetweenVectorsConstraint
from .com import ComInPolyhedronConstraint, ComPositionConstraint
from .distance import DistanceConstraint, PointToPointDistanceConstraint
from .gaze_target import GazeTargetConstraint
from .kinematic_constraint import KinematicConstraint
from .minimum_distance import (
    MinimumDistanceConstraint,
    MinimumDistancePenaltyFunction,
    exponentially_smoothed_hinge_loss,
    quadratically_smoothed_hinge_loss,
)
from .orientation import OrientationConstraint
from .polyhedron import PolyhedronConstraint
from .position import PositionConstraint
from .unit_quaternion import UnitQuaternionConstraint, add_unit_quaternion_constraint_on_plant

__all__ = [
    "AngleBetweenVectorsConstraint",
    "ComInPolyhedronConstraint",
    "ComPositionConstraint",
    "DistanceConstraint",
    "GazeTargetConstraint",
    "KinematicConstraint",
    "MinimumDistanceConstraint",
    "MinimumDistancePenaltyFunction",
    "OrientationConstraint",
    "PointToPointDistanceConstraint",
    "PolyhedronConstraint",
    "PositionConstraint",
    "UnitQuaternionConstraint",
    "add_unit_quaternion_constraint_on_plant",
    "exponentially_smoothed_hinge_loss",
    "quadratically_smoothed_hinge_loss",
]

"""Global inverse kinematics through a mixed-integer relaxation of SO(3)."""

from .global_inverse_kinematics import (
    SUPPORTED_JOINTS,
    GlobalInverseKinematics,
    ReconstructionResult,
    ReconstructionStatus,
)
from .options import GlobalInverseKinematicsOptions, IntervalBinning, RelaxationApproach
from .rotation_relaxation import add_rotation_matrix_relaxation, add_sos2_constraint, breakpoints

__all__ = [
    "GlobalInverseKinematics",
    "GlobalInverseKinematicsOptions",
    "IntervalBinning",
    "ReconstructionResult",
    "ReconstructionStatus",
    "RelaxationApproach",
    "SUPPORTED_JOINTS",
    "add_rotation_matrix_relaxation",
    "add_sos2_constraint",
    "breakpoints",
]

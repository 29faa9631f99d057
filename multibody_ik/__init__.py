"""Pinocchio-based inverse kinematics formulated as mathematical programs.

Kinematic constraints and costs are evaluators over the generalized
positions of a plant. They are assembled into a `MathematicalProgram` by an
`InverseKinematics` session and solved with OSQP, SciPy's MILP or SLSQP.
`GlobalInverseKinematics` instead searches over body poses with a
mixed-integer convex relaxation of SO(3).
"""

from .collision import DistanceQuery, GeometryDistanceQuery, SignedDistancePair
from .configuration import Configuration
from .constants import (
    DEFAULT_INFLUENCE_DISTANCE_OFFSET,
    DEFAULT_NUM_INTERVALS_PER_HALF_AXIS,
    DEFAULT_TOLERANCE,
    EPSILON_FLOAT32,
    EPSILON_FLOAT64,
    QP_EPS_ABS,
    QP_EPS_REL,
)
from .constraints import (
    AngleBetweenVectorsConstraint,
    ComInPolyhedronConstraint,
    ComPositionConstraint,
    DistanceConstraint,
    GazeTargetConstraint,
    KinematicConstraint,
    MinimumDistanceConstraint,
    MinimumDistancePenaltyFunction,
    OrientationConstraint,
    PointToPointDistanceConstraint,
    PolyhedronConstraint,
    PositionConstraint,
    UnitQuaternionConstraint,
    add_unit_quaternion_constraint_on_plant,
)
from .costs import KinematicCost, OrientationCost, PositionCost
from .exceptions import (
    ConstraintDefinitionError,
    ContextInUseError,
    ContextMismatchError,
    CostDefinitionError,
    IKError,
    InvalidConfiguration,
    InvalidFrame,
    InvalidGeometryPair,
    InvalidModelInstance,
    NotWithinConfigurationLimits,
    ProgramDefinitionError,
    UnsupportedJointError,
)
from .global_ik import (
    GlobalInverseKinematics,
    GlobalInverseKinematicsOptions,
    IntervalBinning,
    ReconstructionResult,
    ReconstructionStatus,
    RelaxationApproach,
)
from .inverse_kinematics import InverseKinematics
from .lie import SE3, SO3
from .program import (
    Binding,
    MathematicalProgram,
    MathematicalProgramResult,
    MixedIntegerSolver,
    NonlinearSolver,
    OsqpSolver,
    SolutionResult,
    Solver,
    choose_best_solver,
    solve,
)

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "Configuration",
    # Inverse kinematics
    "InverseKinematics",
    "GlobalInverseKinematics",
    "GlobalInverseKinematicsOptions",
    "IntervalBinning",
    "ReconstructionResult",
    "ReconstructionStatus",
    "RelaxationApproach",
    # Constraints
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
    # Costs
    "KinematicCost",
    "OrientationCost",
    "PositionCost",
    # Collision
    "DistanceQuery",
    "GeometryDistanceQuery",
    "SignedDistancePair",
    # Programs and solvers
    "Binding",
    "MathematicalProgram",
    "MathematicalProgramResult",
    "MixedIntegerSolver",
    "NonlinearSolver",
    "OsqpSolver",
    "SolutionResult",
    "Solver",
    "choose_best_solver",
    "solve",
    # Lie groups
    "SE3",
    "SO3",
    # Exceptions
    "ConstraintDefinitionError",
    "ContextInUseError",
    "ContextMismatchError",
    "CostDefinitionError",
    "IKError",
    "InvalidConfiguration",
    "InvalidFrame",
    "InvalidGeometryPair",
    "InvalidModelInstance",
    "NotWithinConfigurationLimits",
    "ProgramDefinitionError",
    "UnsupportedJointError",
    # Constants
    "DEFAULT_INFLUENCE_DISTANCE_OFFSET",
    "DEFAULT_NUM_INTERVALS_PER_HALF_AXIS",
    "DEFAULT_TOLERANCE",
    "EPSILON_FLOAT32",
    "EPSILON_FLOAT64",
    "QP_EPS_ABS",
    "QP_EPS_REL",
]

"""Constants used throughout the IK formulation layer."""

import numpy as np

# Numerical tolerances
DEFAULT_TOLERANCE = 1e-6
EPSILON_FLOAT32 = 1e-5
EPSILON_FLOAT64 = 1e-10

# Below this norm a direction is treated as undefined and its derivative is zero.
DEGENERATE_NORM = 1e-12

# Pinocchio reports missing joint limits with the largest double.
JOINT_LIMIT_INFINITY = 1e300

# Nonlinear solver (SLSQP) settings
NLP_MAX_ITERATIONS = 500
NLP_FTOL = 1e-10

# QP solver settings
QP_EPS_ABS = 1e-7
QP_EPS_REL = 1e-7
QP_MAX_ITERATIONS = 20000

# Mixed-integer solver settings
MIP_REL_GAP = 1e-6
MIP_TIME_LIMIT = 120.0
# Outer approximation stops once every cone holds to this relative tolerance.
CONE_TOLERANCE = 1e-5
MAX_OUTER_APPROXIMATION_ROUNDS = 100

# Minimum distance constraint
DEFAULT_INFLUENCE_DISTANCE_OFFSET = 1.0

# Global IK
DEFAULT_NUM_INTERVALS_PER_HALF_AXIS = 2
RECONSTRUCTION_FIT_TOLERANCE = 1e-2


def get_epsilon(dtype: np.dtype) -> float:
    """Get numerical epsilon for a given dtype."""
    return {
        np.dtype("float32"): EPSILON_FLOAT32,
        np.dtype("float64"): EPSILON_FLOAT64,
    }.get(dtype, EPSILON_FLOAT64)

"""Position constraint implementation."""

from typing import Optional

import numpy.typing as npt
import pinocchio as pin

from ..configuration import Configuration
from ..exceptions import ConstraintDefinitionError
from ..lie import SE3
from ..program import MutableBounds
from .kinematic_constraint import KinematicConstraint
from .kinematics import check_vector, relative_position


class PositionConstraint(MutableBounds, KinematicConstraint):
    """Constrain the position of a point Q, fixed in frame B, to a box in frame A.

        p_AQ_lower <= p_AQ <= p_AQ_upper

    Frame A is either a frame of the plant or, when `X_AbarA` is given, a
    frame fixed to the plant frame Abar with pose X_AbarA in it. The bounds
    may be changed after construction.

    Example:
        >>> constraint = PositionConstraint(
        ...     plant, "world", np.array([0.4, -0.1, 0.2]), np.array([0.6, 0.1, 0.4]),
        ...     "end_effector", np.zeros(3), context,
        ... )
    """

    def __init__(
        self,
        plant: pin.Model,
        frame_a: str,
        p_AQ_lower: npt.ArrayLike,
        p_AQ_upper: npt.ArrayLike,
        frame_b: str,
        p_BQ: npt.ArrayLike,
        plant_context: Configuration,
        X_AbarA: Optional[SE3] = None,
    ):
        """Initialize position constraint.

        Args:
            plant: Pinocchio model.
            frame_a: Name of frame A, or of frame Abar if X_AbarA is given.
            p_AQ_lower: Lower bound on p_AQ, shape (3,). May contain -inf.
            p_AQ_upper: Upper bound on p_AQ, shape (3,). May contain +inf.
            frame_b: Name of frame B.
            p_BQ: Position of Q in frame B, shape (3,).
            plant_context: Evaluation context of the plant.
            X_AbarA: Optional pose of A in Abar.
        """
        name = self.__class__.__name__
        lower = check_vector(p_AQ_lower, 3, "p_AQ_lower", name, ConstraintDefinitionError)
        upper = check_vector(p_AQ_upper, 3, "p_AQ_upper", name, ConstraintDefinitionError)
        super().__init__(plant, plant_context, 3, lower, upper)
        self.frame_a = frame_a
        self.frame_b = frame_b
        self.context.frame_id(frame_a)
        self.context.frame_id(frame_b)
        self.p_BQ = check_vector(p_BQ, 3, "p_BQ", name, ConstraintDefinitionError)
        self.X_AbarA = X_AbarA

    def _evaluate(self, configuration, x, compute_gradient):
        return relative_position(
            configuration,
            self.frame_a,
            self.X_AbarA,
            self.frame_b,
            self.p_BQ,
            compute_gradient,
        )

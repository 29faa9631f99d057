"""Position cost implementation."""

import numpy as np
import numpy.typing as npt
import pinocchio as pin

from ..configuration import Configuration
from ..constraints.kinematics import check_vector, relative_position
from ..exceptions import CostDefinitionError
from .kinematic_cost import KinematicCost


class PositionCost(KinematicCost):
    """Quadratic cost on the position of a point Q, fixed in frame B, relative to a point P fixed in frame A.

        (p_AQ - p_AP)^T C (p_AQ - p_AP)
    """

    def __init__(
        self,
        plant: pin.Model,
        frame_a: str,
        p_AP: npt.ArrayLike,
        frame_b: str,
        p_BQ: npt.ArrayLike,
        C: npt.ArrayLike,
        plant_context: Configuration,
    ):
        """Initialize position cost.

        Args:
            plant: Pinocchio model.
            frame_a: Name of frame A.
            p_AP: Position of P in A.
            frame_b: Name of frame B.
            p_BQ: Position of Q in B.
            C: Weight matrix of shape (3, 3). Should be positive semidefinite.
            plant_context: Evaluation context of the plant.
        """
        name = self.__class__.__name__
        C = np.asarray(C, dtype=np.float64)
        if C.shape != (3, 3):
            raise CostDefinitionError(f"{name} C should have shape (3, 3) but got {C.shape}")
        super().__init__(plant, plant_context)
        self.context.frame_id(frame_a)
        self.context.frame_id(frame_b)
        self.frame_a = frame_a
        self.frame_b = frame_b
        self.p_AP = check_vector(p_AP, 3, "p_AP", name, CostDefinitionError)
        self.p_BQ = check_vector(p_BQ, 3, "p_BQ", name, CostDefinitionError)
        self.C = C

    def _evaluate(self, configuration, compute_gradient):
        p_AQ, J_AQ = relative_position(
            configuration, self.frame_a, None, self.frame_b, self.p_BQ, compute_gradient
        )
        error = p_AQ - self.p_AP
        value = float(error @ self.C @ error)
        if not compute_gradient:
            return value, None
        return value, (self.C + self.C.T) @ error @ J_AQ

"""Orientation cost implementation."""

import pinocchio as pin

from ..configuration import Configuration
from ..constraints.kinematics import relative_rotation
from ..lie import SO3, vee
from .kinematic_cost import KinematicCost


class OrientationCost(KinematicCost):
    """Penalize the angle theta between two frames A and B with c * (1 - cos(theta)).

    A is fixed to frame Abar with rotation R_AbarA and B to frame Bbar with
    rotation R_BbarB. Since tr(R_AB) = 1 + 2 cos(theta), the cost equals
    c * (3 - tr(R_AB)) / 2 and is smooth everywhere.
    """

    def __init__(
        self,
        plant: pin.Model,
        frame_abar: str,
        R_AbarA: SO3,
        frame_bbar: str,
        R_BbarB: SO3,
        c: float,
        plant_context: Configuration,
    ):
        """Initialize orientation cost.

        Args:
            plant: Pinocchio model.
            frame_abar: Name of frame Abar.
            R_AbarA: Rotation of A in Abar.
            frame_bbar: Name of frame Bbar.
            R_BbarB: Rotation of B in Bbar.
            c: Cost weight.
            plant_context: Evaluation context of the plant.
        """
        super().__init__(plant, plant_context)
        self.context.frame_id(frame_abar)
        self.context.frame_id(frame_bbar)
        self.frame_abar = frame_abar
        self.R_AbarA = R_AbarA
        self.frame_bbar = frame_bbar
        self.R_BbarB = R_BbarB
        self.c = float(c)

    def _evaluate(self, configuration, compute_gradient):
        R_AB, J_delta = relative_rotation(
            configuration,
            self.frame_abar,
            self.R_AbarA,
            self.frame_bbar,
            self.R_BbarB,
            compute_gradient,
        )
        value = 0.5 * self.c * (3.0 - R_AB.trace())
        if not compute_gradient:
            return value, None
        # d tr(R_AB) = -2 vee(R_AB) . delta
        return value, self.c * vee(R_AB) @ J_delta

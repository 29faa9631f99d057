"""Orientation constraint implementation."""

import numpy as np
import pinocchio as pin

from .. import constants as consts
from ..configuration import Configuration
from ..exceptions import ConstraintDefinitionError
from ..lie import SO3
from .kinematic_constraint import KinematicConstraint
from .kinematics import relative_rotation


class OrientationConstraint(KinematicConstraint):
    """Bound the angle between two frames A and B.

    A is fixed to frame Abar with rotation R_AbarA and B to frame Bbar with
    rotation R_BbarB. The constraint value is the angle theta of the
    rotation R_AB, bounded by 0 <= theta <= theta_bound.
    """

    def __init__(
        self,
        plant: pin.Model,
        frame_abar: str,
        R_AbarA: SO3,
        frame_bbar: str,
        R_BbarB: SO3,
        theta_bound: float,
        plant_context: Configuration,
    ):
        """Initialize orientation constraint.

        Args:
            plant: Pinocchio model.
            frame_abar: Name of frame Abar.
            R_AbarA: Rotation of A in Abar.
            frame_bbar: Name of frame Bbar.
            R_BbarB: Rotation of B in Bbar.
            theta_bound: Largest allowed angle in [0, pi] radians.
            plant_context: Evaluation context of the plant.
        """
        if not 0.0 <= theta_bound <= np.pi:
            raise ConstraintDefinitionError(
                f"{self.__class__.__name__} theta_bound should be in [0, pi] but got {theta_bound}"
            )
        super().__init__(plant, plant_context, 1, [0.0], [theta_bound])
        self.context.frame_id(frame_abar)
        self.context.frame_id(frame_bbar)
        self.frame_abar = frame_abar
        self.R_AbarA = R_AbarA
        self.frame_bbar = frame_bbar
        self.R_BbarB = R_BbarB
        self.theta_bound = theta_bound

    def _evaluate(self, configuration, x, compute_gradient):
        R_AB, J_delta = relative_rotation(
            configuration,
            self.frame_abar,
            self.R_AbarA,
            self.frame_bbar,
            self.R_BbarB,
            compute_gradient,
        )
        rotation_vector = pin.log3(R_AB)
        theta = np.linalg.norm(rotation_vector)
        if not compute_gradient:
            return np.array([theta]), None
        if theta < consts.DEGENERATE_NORM:
            return np.array([theta]), np.zeros((1, self.num_vars))
        return np.array([theta]), (rotation_vector / theta @ J_delta)[np.newaxis, :]

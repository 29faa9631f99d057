"""Gaze target constraint implementation."""

import numpy as np
import numpy.typing as npt
import pinocchio as pin

from .. import constants as consts
from ..configuration import Configuration
from ..exceptions import ConstraintDefinitionError
from .kinematic_constraint import KinematicConstraint
from .kinematics import check_vector, relative_position


class GazeTargetConstraint(KinematicConstraint):
    """Keep a target point T inside a cone of view.

    The cone has its apex at a point S fixed in frame A, its axis along n
    (expressed in A) and half angle theta. Writing p_ST for the vector from
    S to T expressed in A and n_hat = n / |n|, the constraint is

        p_ST . n_hat >= 0
        (p_ST . n_hat)^2 - cos(theta)^2 |p_ST|^2 >= 0
    """

    def __init__(
        self,
        plant: pin.Model,
        frame_a: str,
        p_AS: npt.ArrayLike,
        n_A: npt.ArrayLike,
        frame_b: str,
        p_BT: npt.ArrayLike,
        cone_half_angle: float,
        plant_context: Configuration,
    ):
        """Initialize gaze target constraint.

        Args:
            plant: Pinocchio model.
            frame_a: Name of frame A the cone is fixed to.
            p_AS: Cone apex in A.
            n_A: Non-zero cone axis in A.
            frame_b: Name of frame B the target is fixed to.
            p_BT: Target point in B.
            cone_half_angle: Half angle in [0, pi/2] radians.
            plant_context: Evaluation context of the plant.
        """
        name = self.__class__.__name__
        if not 0.0 <= cone_half_angle <= np.pi / 2:
            raise ConstraintDefinitionError(
                f"{name} cone_half_angle should be in [0, pi/2] but got {cone_half_angle}"
            )
        n_A = check_vector(n_A, 3, "n_A", name, ConstraintDefinitionError)
        if np.linalg.norm(n_A) < consts.DEGENERATE_NORM:
            raise ConstraintDefinitionError(f"{name} n_A should be non-zero")
        super().__init__(plant, plant_context, 2, [0.0, 0.0], [np.inf, np.inf])
        self.context.frame_id(frame_a)
        self.context.frame_id(frame_b)
        self.frame_a = frame_a
        self.frame_b = frame_b
        self.p_AS = check_vector(p_AS, 3, "p_AS", name, ConstraintDefinitionError)
        self.n_unit_A = n_A / np.linalg.norm(n_A)
        self.p_BT = check_vector(p_BT, 3, "p_BT", name, ConstraintDefinitionError)
        self.cone_half_angle = cone_half_angle
        self._cos_squared = np.cos(cone_half_angle) ** 2

    def _evaluate(self, configuration, x, compute_gradient):
        p_AT, J_AT = relative_position(
            configuration, self.frame_a, None, self.frame_b, self.p_BT, compute_gradient
        )
        p_ST = p_AT - self.p_AS
        along_axis = p_ST @ self.n_unit_A
        y = np.array([along_axis, along_axis**2 - self._cos_squared * (p_ST @ p_ST)])
        if not compute_gradient:
            return y, None
        d_along_axis = self.n_unit_A @ J_AT
        dy = np.vstack(
            [
                d_along_axis,
                2.0 * along_axis * d_along_axis - 2.0 * self._cos_squared * p_ST @ J_AT,
            ]
        )
        return y, dy

"""Angle between vectors constraint implementation."""

import numpy as np
import numpy.typing as npt
import pinocchio as pin

from .. import constants as consts
from ..configuration import Configuration
from ..exceptions import ConstraintDefinitionError
from ..lie import SO3
from .kinematic_constraint import KinematicConstraint
from .kinematics import check_vector, frame_orientation


class AngleBetweenVectorsConstraint(KinematicConstraint):
    """Bound the angle between a vector a fixed in frame A and a vector b fixed in frame B.

        angle_lower <= angle(a, b) <= angle_upper

    The gradient is zero when a and b are parallel or anti-parallel, where
    the angle is not differentiable.
    """

    def __init__(
        self,
        plant: pin.Model,
        frame_a: str,
        a_A: npt.ArrayLike,
        frame_b: str,
        b_B: npt.ArrayLike,
        angle_lower: float,
        angle_upper: float,
        plant_context: Configuration,
    ):
        """Initialize angle between vectors constraint.

        Args:
            plant: Pinocchio model.
            frame_a: Name of frame A.
            a_A: Non-zero vector fixed in A, expressed in A.
            frame_b: Name of frame B.
            b_B: Non-zero vector fixed in B, expressed in B.
            angle_lower: Lower bound in [0, pi].
            angle_upper: Upper bound in [angle_lower, pi].
            plant_context: Evaluation context of the plant.
        """
        name = self.__class__.__name__
        if not 0.0 <= angle_lower <= angle_upper <= np.pi:
            raise ConstraintDefinitionError(
                f"{name} requires 0 <= angle_lower <= angle_upper <= pi, got "
                f"[{angle_lower}, {angle_upper}]"
            )
        a_A = check_vector(a_A, 3, "a_A", name, ConstraintDefinitionError)
        b_B = check_vector(b_B, 3, "b_B", name, ConstraintDefinitionError)
        for label, vector in (("a_A", a_A), ("b_B", b_B)):
            if np.linalg.norm(vector) < consts.DEGENERATE_NORM:
                raise ConstraintDefinitionError(f"{name} {label} should be non-zero")
        super().__init__(plant, plant_context, 1, [angle_lower], [angle_upper])
        self.context.frame_id(frame_a)
        self.context.frame_id(frame_b)
        self.frame_a = frame_a
        self.frame_b = frame_b
        self.a_unit_A = a_A / np.linalg.norm(a_A)
        self.b_unit_B = b_B / np.linalg.norm(b_B)

    def _evaluate(self, configuration, x, compute_gradient):
        identity = SO3.identity()
        R_WA, J_omega_A = frame_orientation(configuration, self.frame_a, identity, compute_gradient)
        R_WB, J_omega_B = frame_orientation(configuration, self.frame_b, identity, compute_gradient)
        a_W = R_WA @ self.a_unit_A
        b_W = R_WB @ self.b_unit_B
        cross = np.cross(a_W, b_W)
        sin_angle = np.linalg.norm(cross)
        angle = np.arctan2(sin_angle, a_W @ b_W)
        if not compute_gradient:
            return np.array([angle]), None
        if sin_angle < consts.DEGENERATE_NORM:
            return np.array([angle]), np.zeros((1, self.num_vars))
        # Rotating b about m = a x b / |a x b| opens the angle, rotating a closes it.
        m = cross / sin_angle
        return np.array([angle]), (m @ (J_omega_B - J_omega_A))[np.newaxis, :]

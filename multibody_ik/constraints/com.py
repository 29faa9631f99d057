"""Center-of-mass constraints."""

from typing import Optional, Sequence

import numpy as np
import numpy.typing as npt
import pinocchio as pin

from ..configuration import Configuration
from ..exceptions import ConstraintDefinitionError
from .kinematic_constraint import KinematicConstraint
from .kinematics import express_point_in_frame, model_instance_joints


class _ComConstraint(KinematicConstraint):
    """Shared center-of-mass evaluation of the bodies of some model instances."""

    def _setup_com(
        self,
        model_instances: Optional[Sequence[str]],
        expressed_frame: str,
    ) -> None:
        self.context.frame_id(expressed_frame)
        self.joint_ids = model_instance_joints(self.plant, model_instances)
        self.expressed_frame = expressed_frame

    def _com_in_expressed_frame(self, configuration: Configuration, compute_gradient: bool):
        if compute_gradient:
            p_WScm, J_WScm = configuration.get_center_of_mass_jacobian(self.joint_ids)
        else:
            p_WScm, J_WScm = configuration.get_center_of_mass(self.joint_ids), None
        return express_point_in_frame(configuration, self.expressed_frame, None, p_WScm, J_WScm)


class ComPositionConstraint(_ComConstraint):
    """Tie extra decision variables p_EC to the center of mass of some model instances.

    The decision variables are [q; p_EC] and the constraint is
    p_EScm(q) - p_EC = 0, with Scm the center of mass of the selected bodies
    expressed in frame E.
    """

    def __init__(
        self,
        plant: pin.Model,
        model_instances: Optional[Sequence[str]],
        expressed_frame: str,
        plant_context: Configuration,
    ):
        """Initialize center-of-mass position constraint.

        Args:
            plant: Pinocchio model.
            model_instances: Root joint names of the model instances, or None
                for every body.
            expressed_frame: Name of frame E.
            plant_context: Evaluation context of the plant.
        """
        super().__init__(plant, plant_context, 3, np.zeros(3), np.zeros(3), num_vars=plant.nq + 3)
        self._setup_com(model_instances, expressed_frame)

    def _evaluate(self, configuration, x, compute_gradient):
        p_EC = x[self.plant.nq :]
        p_EScm, J_EScm = self._com_in_expressed_frame(configuration, compute_gradient)
        y = p_EScm - p_EC
        if not compute_gradient:
            return y, None
        return y, np.hstack([J_EScm, -np.eye(3)])


class ComInPolyhedronConstraint(_ComConstraint):
    """Constrain the center of mass of some model instances to a polyhedron.

        lb <= A * p_EScm <= ub
    """

    def __init__(
        self,
        plant: pin.Model,
        model_instances: Optional[Sequence[str]],
        expressed_frame: str,
        A: npt.ArrayLike,
        lb: npt.ArrayLike,
        ub: npt.ArrayLike,
        plant_context: Configuration,
    ):
        """Initialize center-of-mass polyhedron constraint.

        Args:
            plant: Pinocchio model.
            model_instances: Root joint names of the model instances, or None
                for every body.
            expressed_frame: Name of frame E.
            A: Matrix of shape (m, 3).
            lb: Lower bounds of shape (m,).
            ub: Upper bounds of shape (m,).
            plant_context: Evaluation context of the plant.
        """
        A = np.atleast_2d(np.asarray(A, dtype=np.float64))
        if A.shape[1] != 3:
            raise ConstraintDefinitionError(
                f"{self.__class__.__name__} A should have shape (m, 3) but got {A.shape}"
            )
        super().__init__(plant, plant_context, A.shape[0], lb, ub)
        self._setup_com(model_instances, expressed_frame)
        self.A = A

    def _evaluate(self, configuration, x, compute_gradient):
        p_EScm, J_EScm = self._com_in_expressed_frame(configuration, compute_gradient)
        if not compute_gradient:
            return self.A @ p_EScm, None
        return self.A @ p_EScm, self.A @ J_EScm

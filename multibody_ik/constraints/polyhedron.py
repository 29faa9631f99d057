"""Polyhedron constraint implementation."""

import numpy as np
import numpy.typing as npt
import pinocchio as pin

from ..configuration import Configuration
from ..exceptions import ConstraintDefinitionError
from .kinematic_constraint import KinematicConstraint
from .kinematics import relative_position


class PolyhedronConstraint(KinematicConstraint):
    """Constrain points P fixed in frame G, measured in frame F, to a polyhedron.

        A * [p_FP_0; p_FP_1; ...; p_FP_(N-1)] <= b

    The positions of the N points are stacked column by column, so A has
    3N columns.
    """

    def __init__(
        self,
        plant: pin.Model,
        frame_f: str,
        frame_g: str,
        p_GP: npt.ArrayLike,
        A: npt.ArrayLike,
        b: npt.ArrayLike,
        plant_context: Configuration,
    ):
        """Initialize polyhedron constraint.

        Args:
            plant: Pinocchio model.
            frame_f: Name of frame F the polyhedron is expressed in.
            frame_g: Name of frame G the points are fixed to.
            p_GP: Points in G, shape (3,) or (3, N).
            A: Polyhedron matrix of shape (m, 3N).
            b: Polyhedron offsets of shape (m,).
            plant_context: Evaluation context of the plant.
        """
        name = self.__class__.__name__
        p_GP = np.asarray(p_GP, dtype=np.float64)
        if p_GP.shape == (3,):
            p_GP = p_GP.reshape(3, 1)
        if p_GP.ndim != 2 or p_GP.shape[0] != 3:
            raise ConstraintDefinitionError(
                f"{name} p_GP should have shape (3,) or (3, N) but got {p_GP.shape}"
            )
        A = np.atleast_2d(np.asarray(A, dtype=np.float64))
        b = np.asarray(b, dtype=np.float64).reshape(-1)
        if A.shape[1] != 3 * p_GP.shape[1] or b.shape != (A.shape[0],):
            raise ConstraintDefinitionError(
                f"{name} expects A of shape (m, {3 * p_GP.shape[1]}) and b of shape (m,), "
                f"got {A.shape} and {b.shape}"
            )
        super().__init__(plant, plant_context, A.shape[0], np.full(A.shape[0], -np.inf), b)
        self.context.frame_id(frame_f)
        self.context.frame_id(frame_g)
        self.frame_f = frame_f
        self.frame_g = frame_g
        self.p_GP = p_GP
        self.A = A
        self.b = b

    def _evaluate(self, configuration, x, compute_gradient):
        positions = []
        jacobians = []
        for p_GPi in self.p_GP.T:
            p_FPi, J_FPi = relative_position(
                configuration, self.frame_f, None, self.frame_g, p_GPi, compute_gradient
            )
            positions.append(p_FPi)
            jacobians.append(J_FPi)
        y = self.A @ np.concatenate(positions)
        if not compute_gradient:
            return y, None
        return y, self.A @ np.vstack(jacobians)

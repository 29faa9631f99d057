"""Build inverse kinematics problems as mathematical programs.

An `InverseKinematics` session owns a program whose decision variables are
the generalized positions q of a plant. Each `add_*` method builds one
kinematic constraint or cost, binds it to q and registers it with the
program; the session can then be solved with any backend of
`multibody_ik.program`.

Example:
    >>> ik = InverseKinematics(model)
    >>> ik.add_position_constraint(
    ...     "end_effector", np.zeros(3), "world",
    ...     np.array([0.5, 0.2, 0.3]), np.array([0.5, 0.2, 0.3]),
    ... )
    >>> result = ik.solve()
    >>> q = result.get_solution(ik.q)
"""

import logging
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import numpy.typing as npt
import pinocchio as pin

from . import constants as consts
from .collision import DistanceQuery
from .configuration import Configuration
from .constraints import (
    AngleBetweenVectorsConstraint,
    ComInPolyhedronConstraint,
    DistanceConstraint,
    GazeTargetConstraint,
    MinimumDistanceConstraint,
    MinimumDistancePenaltyFunction,
    OrientationConstraint,
    PointToPointDistanceConstraint,
    PolyhedronConstraint,
    PositionConstraint,
    add_unit_quaternion_constraint_on_plant,
)
from .constraints.kinematics import check_plant_context
from .constraints.minimum_distance import PenaltyCallable
from .costs import OrientationCost, PositionCost
from .exceptions import ConstraintDefinitionError
from .lie import SE3, SO3
from .program import (
    Binding,
    MathematicalProgram,
    MathematicalProgramResult,
    Solver,
    solve,
)

logger = logging.getLogger(__name__)


class InverseKinematics:
    """An inverse kinematics session over the generalized positions of a plant.

    On construction the session adds:
    * the joint position limits as a bounding box, when requested;
    * a unit-norm constraint on every quaternion block of q;
    * the context's configuration as initial guess for q.

    Attributes:
        plant: Model the session is defined on.
    """

    def __init__(
        self,
        plant: pin.Model,
        plant_context: Optional[Configuration] = None,
        with_joint_limits: bool = True,
        distance_query: Optional[DistanceQuery] = None,
    ):
        """Constructor.

        Args:
            plant: Pinocchio model.
            plant_context: Evaluation context of the plant. If None, a new
                context at the neutral configuration is created and owned by
                the session.
            with_joint_limits: Constrain q to the joint position limits.
            distance_query: Signed distance queries over the plant geometries,
                required by the distance constraints.

        Raises:
            ContextMismatchError: If plant_context was created for another plant.
        """
        if plant_context is None:
            plant_context = Configuration(plant)
        self.plant = plant
        self._context = check_plant_context(self.__class__.__name__, plant, plant_context)
        self.distance_query = distance_query

        self._prog = MathematicalProgram()
        self._q = self._prog.new_continuous_variables(plant.nq, name="q")
        if with_joint_limits:
            lower, upper = self._context.position_limits()
            self._prog.add_bounding_box_constraint(lower, upper, self._q)
            self._context.check_limits(safety_break=False)
        add_unit_quaternion_constraint_on_plant(plant, self._q, self._prog)
        self._prog.set_initial_guess(self._q, self._context.q)

    @property
    def q(self) -> np.ndarray:
        """Decision variables of the generalized positions, shape (nq,)."""
        return self._q

    @property
    def prog(self) -> MathematicalProgram:
        return self._prog

    def get_mutable_prog(self) -> MathematicalProgram:
        return self._prog

    @property
    def context(self) -> Configuration:
        return self._context

    def get_mutable_context(self) -> Configuration:
        return self._context

    def solve(
        self,
        initial_guess: Optional[np.ndarray] = None,
        solver: Optional[Solver] = None,
    ) -> MathematicalProgramResult:
        """Solve the session's program. See `multibody_ik.program.solve`."""
        return solve(self._prog, initial_guess=initial_guess, solver=solver)

    def add_position_constraint(
        self,
        frame_b: str,
        p_BQ: npt.ArrayLike,
        frame_a: str,
        p_AQ_lower: npt.ArrayLike,
        p_AQ_upper: npt.ArrayLike,
        X_AbarA: Optional[SE3] = None,
    ) -> Binding:
        """Constrain a point Q fixed in frame B to lie in a box in frame A.

        Args:
            frame_b: Name of frame B.
            p_BQ: Position of Q in B.
            frame_a: Name of frame A, or of frame Abar when X_AbarA is given.
            p_AQ_lower: Lower corner of the box, expressed in A.
            p_AQ_upper: Upper corner of the box, expressed in A.
            X_AbarA: Optional pose of A in frame Abar.
        """
        constraint = PositionConstraint(
            self.plant, frame_a, p_AQ_lower, p_AQ_upper, frame_b, p_BQ, self._context, X_AbarA
        )
        return self._prog.add_constraint(constraint, self._q)

    def add_position_cost(
        self,
        frame_a: str,
        p_AP: npt.ArrayLike,
        frame_b: str,
        p_BQ: npt.ArrayLike,
        C: npt.ArrayLike,
    ) -> Binding:
        """Add (p_AQ - p_AP)^T C (p_AQ - p_AP) to the cost."""
        cost = PositionCost(self.plant, frame_a, p_AP, frame_b, p_BQ, C, self._context)
        return self._prog.add_cost(cost, self._q)

    def add_orientation_constraint(
        self,
        frame_abar: str,
        R_AbarA: SO3,
        frame_bbar: str,
        R_BbarB: SO3,
        theta_bound: float,
    ) -> Binding:
        """Bound the angle between frames A and B by theta_bound in [0, pi]."""
        constraint = OrientationConstraint(
            self.plant, frame_abar, R_AbarA, frame_bbar, R_BbarB, theta_bound, self._context
        )
        return self._prog.add_constraint(constraint, self._q)

    def add_orientation_cost(
        self,
        frame_abar: str,
        R_AbarA: SO3,
        frame_bbar: str,
        R_BbarB: SO3,
        c: float,
    ) -> Binding:
        """Add c * (1 - cos(theta)) to the cost, theta the angle between A and B."""
        cost = OrientationCost(
            self.plant, frame_abar, R_AbarA, frame_bbar, R_BbarB, c, self._context
        )
        return self._prog.add_cost(cost, self._q)

    def add_gaze_target_constraint(
        self,
        frame_a: str,
        p_AS: npt.ArrayLike,
        n_A: npt.ArrayLike,
        frame_b: str,
        p_BT: npt.ArrayLike,
        cone_half_angle: float,
    ) -> Binding:
        """Keep a target T fixed in frame B inside a cone fixed in frame A."""
        constraint = GazeTargetConstraint(
            self.plant, frame_a, p_AS, n_A, frame_b, p_BT, cone_half_angle, self._context
        )
        return self._prog.add_constraint(constraint, self._q)

    def add_angle_between_vectors_constraint(
        self,
        frame_a: str,
        na_A: npt.ArrayLike,
        frame_b: str,
        nb_B: npt.ArrayLike,
        angle_lower: float,
        angle_upper: float,
    ) -> Binding:
        """Bound the angle between a vector fixed in A and a vector fixed in B."""
        constraint = AngleBetweenVectorsConstraint(
            self.plant, frame_a, na_A, frame_b, nb_B, angle_lower, angle_upper, self._context
        )
        return self._prog.add_constraint(constraint, self._q)

    def add_minimum_distance_constraint(
        self,
        minimum_distance: float,
        influence_distance_offset: float = consts.DEFAULT_INFLUENCE_DISTANCE_OFFSET,
        penalty_function: Union[
            MinimumDistancePenaltyFunction, PenaltyCallable
        ] = MinimumDistancePenaltyFunction.QUADRATICALLY_SMOOTHED_HINGE,
    ) -> Binding:
        """Keep every registered pair of geometries at least minimum_distance apart."""
        constraint = MinimumDistanceConstraint(
            self.plant,
            minimum_distance,
            self._context,
            self._require_distance_query("add_minimum_distance_constraint"),
            penalty_function=penalty_function,
            influence_distance_offset=influence_distance_offset,
        )
        return self._prog.add_constraint(constraint, self._q)

    def add_distance_constraint(
        self,
        geometry_pair: Tuple[str, str],
        distance_lower: float,
        distance_upper: float,
    ) -> Binding:
        """Bound the signed distance between two geometries."""
        constraint = DistanceConstraint(
            self.plant,
            geometry_pair,
            self._context,
            self._require_distance_query("add_distance_constraint"),
            distance_lower,
            distance_upper,
        )
        return self._prog.add_constraint(constraint, self._q)

    def add_point_to_point_distance_constraint(
        self,
        frame1: str,
        p_B1P1: npt.ArrayLike,
        frame2: str,
        p_B2P2: npt.ArrayLike,
        distance_lower: float,
        distance_upper: float,
    ) -> Binding:
        """Bound the distance between a point fixed in frame1 and a point fixed in frame2."""
        constraint = PointToPointDistanceConstraint(
            self.plant,
            frame1,
            p_B1P1,
            frame2,
            p_B2P2,
            distance_lower,
            distance_upper,
            self._context,
        )
        return self._prog.add_constraint(constraint, self._q)

    def add_polyhedron_constraint(
        self,
        frame_f: str,
        frame_g: str,
        p_GP: npt.ArrayLike,
        A: npt.ArrayLike,
        b: npt.ArrayLike,
    ) -> Binding:
        """Constrain points fixed in frame G, measured in frame F, to A p_FP <= b."""
        constraint = PolyhedronConstraint(
            self.plant, frame_f, frame_g, p_GP, A, b, self._context
        )
        return self._prog.add_constraint(constraint, self._q)

    def add_com_in_polyhedron_constraint(
        self,
        model_instances: Optional[Sequence[str]],
        expressed_frame: str,
        A: npt.ArrayLike,
        lb: npt.ArrayLike,
        ub: npt.ArrayLike,
    ) -> Binding:
        """Constrain the center of mass of some model instances to lb <= A p_EScm <= ub."""
        constraint = ComInPolyhedronConstraint(
            self.plant, model_instances, expressed_frame, A, lb, ub, self._context
        )
        return self._prog.add_constraint(constraint, self._q)

    def _require_distance_query(self, method: str) -> DistanceQuery:
        if self.distance_query is None:
            raise ConstraintDefinitionError(
                f"{self.__class__.__name__}.{method} requires a distance_query"
            )
        return self.distance_query

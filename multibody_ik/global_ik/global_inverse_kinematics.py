"""Global inverse kinematics through a mixed-integer convex relaxation.

Instead of the generalized positions q, the decision variables are the
pose of every body in the world: a rotation matrix R_WB and a position
p_WB. Rotation matrices are constrained to a mixed-integer relaxation of
SO(3) (see `rotation_relaxation`), and joints couple the poses of parent
and child bodies with linear (and, for joint limits, conic) constraints.
Position and orientation requirements in the world are then linear in the
decision variables, so the whole problem can be solved to global
optimality by a mixed-integer solver.

Bodies are indexed like pinocchio joints: body 0 is the world, body i is
the body moved by joint i.

Example:
    >>> global_ik = GlobalInverseKinematics(model)
    >>> global_ik.add_world_position_constraint(
    ...     2, np.array([1.0, 0.0, 0.0]), target - 0.01, target + 0.01
    ... )
    >>> result = solve(global_ik.prog)
    >>> reconstruction = global_ik.reconstruct_generalized_position_solution(result)
"""

import enum
import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import numpy.typing as npt
import pinocchio as pin
from scipy import optimize

from .. import constants as consts
from ..configuration import Configuration, unit_norm_blocks
from ..exceptions import (
    ConstraintDefinitionError,
    CostDefinitionError,
    InvalidConfiguration,
    ProgramDefinitionError,
    UnsupportedJointError,
)
from ..lie import SE3, SO3, project_to_rotation_matrix
from ..program import Binding, MathematicalProgram, MathematicalProgramResult
from .options import GlobalInverseKinematicsOptions
from .rotation_relaxation import add_rotation_matrix_relaxation

logger = logging.getLogger(__name__)

_REVOLUTE_AXES = {
    "JointModelRX": 0,
    "JointModelRY": 1,
    "JointModelRZ": 2,
    "JointModelRUBX": 0,
    "JointModelRUBY": 1,
    "JointModelRUBZ": 2,
}
_UNBOUNDED_REVOLUTE = {"JointModelRUBX", "JointModelRUBY", "JointModelRUBZ"}
_FREE_JOINTS = {"JointModelFreeFlyer"}
SUPPORTED_JOINTS = tuple(sorted(set(_REVOLUTE_AXES) | _FREE_JOINTS))


class ReconstructionStatus(enum.Enum):
    # The reconstructed posture matches the relaxed body poses.
    SUCCESS = "success"
    # A posture was found but the relaxed body poses are not reproduced.
    POOR_FIT = "poor_fit"
    # The program was not solved; there is nothing to reconstruct.
    FAILED = "failed"


@dataclass
class ReconstructionResult:
    """Generalized positions recovered from a solution of the relaxation.

    Attributes:
        q: Generalized positions, NaN when reconstruction failed.
        status: Quality of the reconstruction.
        fit_error: Norm of the difference between the body poses at q and
            the relaxed body poses.
        max_orthogonality_error: Largest |R^T R - I|_F over the relaxed
            rotation matrices. Zero when the relaxation is tight.
    """

    q: np.ndarray
    status: ReconstructionStatus
    fit_error: float
    max_orthogonality_error: float


def _perpendicular_basis(axis_index: int):
    """Unit vectors e1, e2 with e1 x e2 equal to the given coordinate axis."""
    eye = np.eye(3)
    return eye[(axis_index + 1) % 3], eye[(axis_index + 2) % 3]


class GlobalInverseKinematics:
    """Inverse kinematics over body poses, relaxed to a mixed-integer convex program.

    Supported joints are revolute joints about a coordinate axis (bounded or
    unbounded) and free-flyer joints.
    """

    Options = GlobalInverseKinematicsOptions

    def __init__(
        self,
        plant: pin.Model,
        options: Optional[GlobalInverseKinematicsOptions] = None,
    ):
        """Constructor.

        Args:
            plant: Pinocchio model.
            options: Relaxation options. Defaults to `Options()`.

        Raises:
            ProgramDefinitionError: If the options are invalid.
            UnsupportedJointError: If the plant has a joint that cannot be relaxed.
        """
        if options is None:
            options = GlobalInverseKinematicsOptions()
        options.validate()
        self.plant = plant
        self.options = options
        for body in range(1, plant.njoints):
            joint = plant.joints[body]
            if joint.shortname() not in SUPPORTED_JOINTS:
                raise UnsupportedJointError(plant.names[body], joint.shortname(), SUPPORTED_JOINTS)

        self._prog = MathematicalProgram()
        self._R: List[np.ndarray] = []
        self._p: List[np.ndarray] = []
        for body in range(plant.njoints):
            self._R.append(self._prog.new_continuous_variables(3, 3, name=f"R_WB{body}"))
            self._p.append(self._prog.new_continuous_variables(3, name=f"p_WB{body}"))

        # The world body is fixed.
        self._prog.add_bounding_box_constraint(np.eye(3).ravel(), np.eye(3).ravel(), self._R[0])
        self._prog.add_bounding_box_constraint(0.0, 0.0, self._p[0])

        for body in range(1, plant.njoints):
            add_rotation_matrix_relaxation(self._prog, self._R[body], options)
            self._add_joint_constraints(body)
        logger.debug(f"Built global IK over {plant.njoints} bodies: {self._prog!r}")

    @property
    def prog(self) -> MathematicalProgram:
        return self._prog

    def get_mutable_prog(self) -> MathematicalProgram:
        return self._prog

    def body_rotation_matrix(self, body_index: int) -> np.ndarray:
        """Variables of the rotation matrix R_WB of a body, shape (3, 3)."""
        return self._R[self._check_body(body_index)]

    def body_position(self, body_index: int) -> np.ndarray:
        """Variables of the position p_WB of a body origin, shape (3,)."""
        return self._p[self._check_body(body_index)]

    def add_world_position_constraint(
        self,
        body_index: int,
        p_BQ: npt.ArrayLike,
        box_lb_F: npt.ArrayLike,
        box_ub_F: npt.ArrayLike,
        X_WF: Optional[SE3] = None,
    ) -> Binding:
        """Constrain a point Q fixed in body B to a box in frame F.

            box_lb_F <= R_WF^T (p_WQ - p_WF) <= box_ub_F

        Args:
            body_index: Index of body B.
            p_BQ: Position of Q in B.
            box_lb_F: Lower corner of the box, expressed in F.
            box_ub_F: Upper corner of the box, expressed in F.
            X_WF: Pose of F in world. Identity if None.
        """
        if X_WF is None:
            X_WF = SE3.identity()
        R_WF = X_WF.rotation.as_matrix()
        variables, M = self._point_expression(body_index, p_BQ)
        offset = R_WF.T @ X_WF.translation
        lower, upper = self._box(box_lb_F, box_ub_F)
        return self._prog.add_linear_constraint(R_WF.T @ M, lower + offset, upper + offset, variables)

    def add_world_relative_position_constraint(
        self,
        body_index_B: int,
        p_BQ: npt.ArrayLike,
        body_index_A: int,
        p_AP: npt.ArrayLike,
        box_lb_F: npt.ArrayLike,
        box_ub_F: npt.ArrayLike,
        X_WF: Optional[SE3] = None,
    ) -> Binding:
        """Constrain the position of Q (fixed in B) relative to P (fixed in A) to a box.

            box_lb_F <= R_WF^T (p_WQ - p_WP) <= box_ub_F

        Only the orientation of F matters.
        """
        if X_WF is None:
            X_WF = SE3.identity()
        R_WF = X_WF.rotation.as_matrix()
        variables_B, M_B = self._point_expression(body_index_B, p_BQ)
        variables_A, M_A = self._point_expression(body_index_A, p_AP)
        lower, upper = self._box(box_lb_F, box_ub_F)
        return self._prog.add_linear_constraint(
            R_WF.T @ np.hstack([M_B, -M_A]),
            lower,
            upper,
            np.concatenate([variables_B, variables_A]),
        )

    def add_world_orientation_constraint(
        self,
        body_index: int,
        desired_orientation: SO3,
        angle_tol: float,
    ) -> Binding:
        """Bound the angle between a body orientation and a desired orientation.

        The angle theta of R_des^T R_WB satisfies tr(R_des^T R_WB) = 1 + 2 cos(theta),
        so theta <= angle_tol becomes the linear constraint
        tr(R_des^T R_WB) >= 1 + 2 cos(angle_tol).

        Args:
            body_index: Index of the body.
            desired_orientation: Desired orientation R_des of the body in world.
            angle_tol: Largest allowed angle in [0, pi] radians.
        """
        if not 0.0 <= angle_tol <= np.pi:
            raise ConstraintDefinitionError(
                f"{self.__class__.__name__} angle_tol should be in [0, pi] but got {angle_tol}"
            )
        R_des = desired_orientation.as_matrix()
        R = self.body_rotation_matrix(body_index)
        return self._prog.add_linear_constraint(
            R_des.ravel()[np.newaxis, :], [1.0 + 2.0 * np.cos(angle_tol)], [np.inf], R.ravel()
        )

    def add_posture_cost(
        self,
        q_desired: npt.ArrayLike,
        body_position_cost: npt.ArrayLike,
        body_orientation_cost: npt.ArrayLike,
    ) -> List[Binding]:
        """Penalize the deviation of every body pose from its pose at q_desired.

        For body i with desired pose (R_i, p_i) the cost is

            body_position_cost[i] * |p_WB - p_i|
            + body_orientation_cost[i] * (1 - cos(theta_i))

        with theta_i the angle of R_i^T R_WB. The position error uses a
        Lorentz cone epigraph, or its L1 upper bound when only linear
        constraints are allowed. The orientation error is linear in R_WB.

        Args:
            q_desired: Desired generalized positions, shape (nq,).
            body_position_cost: Non-negative weights, one per body (njoints).
            body_orientation_cost: Non-negative weights, one per body (njoints).
                Weights of the world body are ignored.

        Returns:
            The added cost bindings.
        """
        name = self.__class__.__name__
        q_desired = np.asarray(q_desired, dtype=np.float64)
        if q_desired.shape != (self.plant.nq,):
            raise InvalidConfiguration(self.plant.nq, q_desired.shape)
        weights = []
        for label, cost in (
            ("body_position_cost", body_position_cost),
            ("body_orientation_cost", body_orientation_cost),
        ):
            cost = np.asarray(cost, dtype=np.float64)
            if cost.shape != (self.plant.njoints,):
                raise CostDefinitionError(
                    f"{name} {label} should have shape ({self.plant.njoints},) but got {cost.shape}"
                )
            if np.any(cost < 0.0):
                raise CostDefinitionError(f"{name} {label} should be >= 0")
            weights.append(cost)
        position_cost, orientation_cost = weights

        desired = Configuration(self.plant, q_desired)
        bindings = []
        for body in range(1, self.plant.njoints):
            placement = desired.data.oMi[body]
            if position_cost[body] > 0.0:
                bindings.append(
                    self._add_position_error_cost(body, placement.translation, position_cost[body])
                )
            if orientation_cost[body] > 0.0:
                c = orientation_cost[body]
                bindings.append(
                    self._prog.add_linear_cost(
                        -0.5 * c * placement.rotation.ravel(),
                        self._R[body].ravel(),
                        b=1.5 * c,
                    )
                )
        return bindings

    def set_initial_guess(self, q: npt.ArrayLike) -> None:
        """Set the initial guess of every body pose to its pose at q."""
        configuration = Configuration(self.plant, np.asarray(q, dtype=np.float64))
        for body in range(self.plant.njoints):
            placement = configuration.data.oMi[body]
            self._prog.set_initial_guess(self._R[body], placement.rotation.ravel())
            self._prog.set_initial_guess(self._p[body], placement.translation)

    def reconstruct_generalized_position_solution(
        self,
        result: MathematicalProgramResult,
    ) -> ReconstructionResult:
        """Recover generalized positions from a solution of the relaxation.

        Each joint coordinate is first read from the relaxed poses of its
        parent and child bodies, after projecting the relaxed rotations onto
        SO(3) and clamping to the joint limits. The result is then refined
        by a bound-constrained least-squares fit of the body poses.

        Args:
            result: Result of solving `prog`.

        Returns:
            The reconstructed generalized positions and the fit quality.
        """
        x = np.asarray(result.x_val, dtype=np.float64)
        if not result.is_success() or x.shape != (self._prog.num_vars,) or np.any(np.isnan(x)):
            logger.warning(
                f"Cannot reconstruct generalized positions from a {result.status} result"
            )
            return ReconstructionResult(
                q=np.full(self.plant.nq, np.nan),
                status=ReconstructionStatus.FAILED,
                fit_error=np.inf,
                max_orthogonality_error=np.inf,
            )

        R_hat = [result.get_solution(R) for R in self._R]
        p_hat = [result.get_solution(p) for p in self._p]
        max_orthogonality_error = max(
            (np.linalg.norm(R.T @ R - np.eye(3)) for R in R_hat[1:]), default=0.0
        )

        q0 = self._project_joint_coordinates(R_hat, p_hat)
        configuration = Configuration(self.plant, q0)
        lower, upper = configuration.position_limits()
        # least_squares needs strictly ordered bounds.
        degenerate = lower >= upper
        lower[degenerate] -= consts.DEFAULT_TOLERANCE
        upper[degenerate] += consts.DEFAULT_TOLERANCE

        def residuals(q: np.ndarray) -> np.ndarray:
            configuration.update(q)
            errors = []
            for body in range(1, self.plant.njoints):
                placement = configuration.data.oMi[body]
                errors.append((placement.rotation - R_hat[body]).ravel())
                errors.append(placement.translation - p_hat[body])
            return np.concatenate(errors) if errors else np.zeros(0)

        q = q0
        if self.plant.nq > 0:
            solution = optimize.least_squares(
                residuals, np.clip(q0, lower, upper), bounds=(lower, upper), method="trf"
            )
            q = self._normalize(solution.x)
        fit_error = float(np.linalg.norm(residuals(q)))

        status = ReconstructionStatus.SUCCESS
        if fit_error > consts.RECONSTRUCTION_FIT_TOLERANCE:
            status = ReconstructionStatus.POOR_FIT
            logger.warning(
                f"Reconstructed posture does not match the relaxed body poses "
                f"(fit error {fit_error:.4g}, orthogonality error "
                f"{max_orthogonality_error:.4g}); the relaxation is not tight"
            )
        return ReconstructionResult(
            q=q,
            status=status,
            fit_error=fit_error,
            max_orthogonality_error=float(max_orthogonality_error),
        )

    def _check_body(self, body_index: int) -> int:
        if not 0 <= body_index < self.plant.njoints:
            raise ProgramDefinitionError(
                f"Body index {body_index} is out of range [0, {self.plant.njoints})"
            )
        return int(body_index)

    def _point_expression(self, body_index: int, p_BQ: npt.ArrayLike):
        """Variables and matrix M with p_WQ = M @ variables = p_WB + R_WB p_BQ."""
        p_BQ = np.asarray(p_BQ, dtype=np.float64).reshape(-1)
        if p_BQ.shape != (3,):
            raise ConstraintDefinitionError(
                f"{self.__class__.__name__} point should have shape (3,) but got {p_BQ.shape}"
            )
        R = self.body_rotation_matrix(body_index)
        p = self.body_position(body_index)
        variables = np.concatenate([p, R[:, 0], R[:, 1], R[:, 2]])
        M = np.hstack([np.eye(3)] + [p_BQ[j] * np.eye(3) for j in range(3)])
        return variables, M

    def _box(self, box_lb: npt.ArrayLike, box_ub: npt.ArrayLike):
        lower = np.asarray(box_lb, dtype=np.float64).reshape(-1)
        upper = np.asarray(box_ub, dtype=np.float64).reshape(-1)
        if lower.shape != (3,) or upper.shape != (3,):
            raise ConstraintDefinitionError(
                f"{self.__class__.__name__} box bounds should have shape (3,) but got "
                f"{lower.shape} and {upper.shape}"
            )
        return lower, upper

    def _add_joint_constraints(self, body: int) -> None:
        joint = self.plant.joints[body]
        kind = joint.shortname()
        if kind in _FREE_JOINTS:
            return

        parent = self.plant.parents[body]
        X_PJ = self.plant.jointPlacements[body]
        R_C, R_P = self._R[body], self._R[parent]
        p_C, p_P = self._p[body], self._p[parent]

        # The joint axis is fixed in both the parent and the child: R_WC a = R_WP R_PJ a.
        axis_index = _REVOLUTE_AXES[kind]
        a = np.eye(3)[axis_index]
        a_P = X_PJ.rotation @ a
        for i in range(3):
            self._prog.add_linear_equality_constraint(
                np.concatenate([a, -a_P])[np.newaxis, :],
                [0.0],
                np.concatenate([R_C[i, :], R_P[i, :]]),
            )
        # Revolute joints do not move the child origin: p_WC = p_WP + R_WP p_PJ.
        p_PJ = X_PJ.translation
        for i in range(3):
            self._prog.add_linear_equality_constraint(
                np.concatenate([[1.0, -1.0], -p_PJ])[np.newaxis, :],
                [0.0],
                np.concatenate([[p_C[i], p_P[i]], R_P[i, :]]),
            )

        if kind in _UNBOUNDED_REVOLUTE:
            return
        lower = self.plant.lowerPositionLimit[joint.idx_q]
        upper = self.plant.upperPositionLimit[joint.idx_q]
        if not (np.isfinite(lower) and np.isfinite(upper)) or upper - lower >= 2.0 * np.pi:
            return
        self._add_joint_range_constraint(body, parent, X_PJ, axis_index, lower, upper)

    def _add_joint_range_constraint(
        self,
        body: int,
        parent: int,
        X_PJ: pin.SE3,
        axis_index: int,
        lower: float,
        upper: float,
    ) -> None:
        """Bound the joint angle to [lower, upper] through a vector v perpendicular to the axis.

        At joint angle theta, R_WC v and R_WP R_PJ Rot(a, mid) v are |theta - mid|
        apart in angle, so the chord between them is at most 2 sin(range / 4).
        """
        v, _ = _perpendicular_basis(axis_index)
        middle = 0.5 * (lower + upper)
        bound = 2.0 * np.sin(0.25 * (upper - lower))
        a = np.eye(3)[axis_index]
        w = X_PJ.rotation @ SO3.from_axis_angle(a, middle).as_matrix() @ v
        A = np.zeros((4, 18))
        for i in range(3):
            A[1 + i, 3 * i : 3 * i + 3] = v
            A[1 + i, 9 + 3 * i : 9 + 3 * i + 3] = -w
        variables = np.concatenate([self._R[body].ravel(), self._R[parent].ravel()])
        if self.options.linear_constraint_only:
            self._prog.add_linear_constraint(
                A[1:], np.full(3, -bound), np.full(3, bound), variables
            )
        else:
            self._prog.add_lorentz_cone_constraint(A, np.array([bound, 0.0, 0.0, 0.0]), variables)

    def _add_position_error_cost(self, body: int, p_desired: np.ndarray, weight: float) -> Binding:
        p = self._p[body]
        if self.options.linear_constraint_only:
            # |e|_1 >= |e|_2 with e = p - p_desired.
            e = self._prog.new_continuous_variables(3, name=f"position_error{body}")
            A = np.vstack([np.hstack([np.eye(3), -np.eye(3)]), np.hstack([-np.eye(3), -np.eye(3)])])
            self._prog.add_linear_constraint(
                A,
                np.full(6, -np.inf),
                np.concatenate([p_desired, -p_desired]),
                np.concatenate([p, e]),
            )
            return self._prog.add_linear_cost(weight * np.ones(3), e)
        t = self._prog.new_continuous_variables(1, name=f"position_error{body}")
        A = np.zeros((4, 4))
        A[0, 0] = 1.0
        A[1:, 1:] = np.eye(3)
        self._prog.add_lorentz_cone_constraint(
            A, np.concatenate([[0.0], -p_desired]), np.concatenate([t, p])
        )
        return self._prog.add_linear_cost([weight], t)

    def _project_joint_coordinates(self, R_hat: List[np.ndarray], p_hat: List[np.ndarray]) -> np.ndarray:
        q = pin.neutral(self.plant)
        R_rec = [np.eye(3)]
        p_rec = [np.zeros(3)]
        for body in range(1, self.plant.njoints):
            joint = self.plant.joints[body]
            kind = joint.shortname()
            parent = self.plant.parents[body]
            X_PJ = self.plant.jointPlacements[body]
            R_WJ = R_rec[parent] @ X_PJ.rotation
            p_WJ = p_rec[parent] + R_rec[parent] @ X_PJ.translation
            R_WC = project_to_rotation_matrix(R_hat[body])

            if kind in _FREE_JOINTS:
                R_JC = R_WJ.T @ R_WC
                q[joint.idx_q : joint.idx_q + 3] = R_WJ.T @ (p_hat[body] - p_WJ)
                q[joint.idx_q + 3 : joint.idx_q + 7] = SO3.from_matrix(R_JC).quat
                R_rec.append(R_WC)
                p_rec.append(p_hat[body].copy())
                continue

            axis_index = _REVOLUTE_AXES[kind]
            e1, e2 = _perpendicular_basis(axis_index)
            R_JC = R_WJ.T @ R_WC
            theta = np.arctan2(e2 @ R_JC @ e1 - e1 @ R_JC @ e2, e1 @ R_JC @ e1 + e2 @ R_JC @ e2)
            if kind in _UNBOUNDED_REVOLUTE:
                q[joint.idx_q : joint.idx_q + 2] = [np.cos(theta), np.sin(theta)]
            else:
                theta = float(
                    np.clip(
                        theta,
                        self.plant.lowerPositionLimit[joint.idx_q],
                        self.plant.upperPositionLimit[joint.idx_q],
                    )
                )
                q[joint.idx_q] = theta
            axis = np.eye(3)[axis_index]
            R_rec.append(R_WJ @ SO3.from_axis_angle(axis, theta).as_matrix())
            p_rec.append(p_WJ)
        return q

    def _normalize(self, q: np.ndarray) -> np.ndarray:
        q = q.copy()
        for block in unit_norm_blocks(self.plant):
            norm = np.linalg.norm(q[block])
            if norm > consts.DEGENERATE_NORM:
                q[block] /= norm
        return q

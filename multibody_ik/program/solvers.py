"""Solve mathematical programs with scipy and OSQP.

Three backends cover the programs the IK layer builds:

* `MixedIntegerSolver`: linear costs, linear and Lorentz cone constraints,
  optionally binary variables. Uses `scipy.optimize.milp` (HiGHS) and
  handles Lorentz cones with outer-approximation cutting planes.
* `OsqpSolver`: continuous programs with linear/quadratic costs and linear
  constraints.
* `NonlinearSolver`: continuous programs with arbitrary differentiable
  constraints and costs, solved by SLSQP with analytic gradients.

Solver outcomes are reported through `MathematicalProgramResult.status`;
a failing solve never raises.
"""

import abc
import enum
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
import numpy.typing as npt
import osqp
from scipy import optimize, sparse

from .. import constants as consts
from ..exceptions import ProgramDefinitionError
from .evaluators import BoundingBoxConstraint
from .mathematical_program import Binding, MathematicalProgram

logger = logging.getLogger(__name__)


class SolutionResult(enum.Enum):
    SOLVED = "solved"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    ITERATION_LIMIT = "iteration_limit"
    NUMERICAL_ERROR = "numerical_error"


@dataclass
class MathematicalProgramResult:
    """Outcome of a solve.

    Attributes:
        status: Solver outcome.
        x_val: Value of every decision variable (NaN if the solver returned
            no point).
        optimal_cost: Total cost at x_val.
        solver_name: Name of the backend that produced the result.
        message: Backend-specific status message.
    """

    status: SolutionResult
    x_val: np.ndarray
    optimal_cost: float
    solver_name: str
    message: str = ""

    def is_success(self) -> bool:
        return self.status is SolutionResult.SOLVED

    def get_solution(self, variables: npt.ArrayLike) -> np.ndarray:
        """Values of the given decision variables, shaped like `variables`."""
        return self.x_val[np.asarray(variables, dtype=int)]


class Solver(abc.ABC):
    """Abstract base class for solver backends."""

    name: str = ""

    @abc.abstractmethod
    def is_available_for(self, prog: MathematicalProgram) -> bool:
        """Returns True if this backend can solve the program."""
        raise NotImplementedError

    @abc.abstractmethod
    def solve(
        self,
        prog: MathematicalProgram,
        initial_guess: Optional[np.ndarray] = None,
    ) -> MathematicalProgramResult:
        """Solve the program.

        Args:
            prog: Program to solve.
            initial_guess: Starting point. If None, the program's initial
                guess is used, with unset entries replaced by zero.
        """
        raise NotImplementedError


def _variable_bounds(prog: MathematicalProgram) -> Tuple[np.ndarray, np.ndarray]:
    """Intersection of every bounding box constraint of the program."""
    lower = np.full(prog.num_vars, -np.inf)
    upper = np.full(prog.num_vars, np.inf)
    for binding in prog.bounding_box_constraints():
        np.maximum.at(lower, binding.variables, binding.evaluator.lower_bound)
        np.minimum.at(upper, binding.variables, binding.evaluator.upper_bound)
    return lower, upper


def _scatter_rows(A: np.ndarray, variables: np.ndarray, num_vars: int) -> sparse.csr_matrix:
    """Expand a matrix acting on `variables` to one acting on every variable."""
    A = np.atleast_2d(A)
    rows = np.repeat(np.arange(A.shape[0]), A.shape[1])
    cols = np.tile(variables, A.shape[0])
    return sparse.csr_matrix((A.ravel(), (rows, cols)), shape=(A.shape[0], num_vars))


def _scatter_gradient(dy: np.ndarray, variables: np.ndarray, num_vars: int) -> np.ndarray:
    scattered = np.zeros((num_vars, dy.shape[0]))
    np.add.at(scattered, variables, dy.T)
    return scattered.T


def _starting_point(
    prog: MathematicalProgram,
    initial_guess: Optional[np.ndarray],
) -> np.ndarray:
    if initial_guess is None:
        initial_guess = prog.initial_guess
    x0 = np.array(initial_guess, dtype=np.float64)
    if x0.shape != (prog.num_vars,):
        raise ProgramDefinitionError(
            f"Initial guess should have shape ({prog.num_vars},) but got {x0.shape}"
        )
    x0[np.isnan(x0)] = 0.0
    return x0


def _total_cost(prog: MathematicalProgram, x: np.ndarray) -> float:
    if np.any(np.isnan(x)):
        return np.nan
    return float(sum(b.evaluator.eval(x[b.variables])[0] for b in prog.costs()))


def _is_feasible(prog: MathematicalProgram, x: np.ndarray, tol: float) -> bool:
    return all(b.evaluator.check_satisfied(x[b.variables], tol) for b in prog.constraints())


def _failed_result(
    prog: MathematicalProgram,
    status: SolutionResult,
    solver_name: str,
    message: str,
    x: Optional[np.ndarray] = None,
) -> MathematicalProgramResult:
    if x is None:
        x = np.full(prog.num_vars, np.nan)
    return MathematicalProgramResult(
        status=status,
        x_val=x,
        optimal_cost=_total_cost(prog, x),
        solver_name=solver_name,
        message=message,
    )


class MixedIntegerSolver(Solver):
    """Mixed-integer linear programming with Lorentz cone outer approximation.

    Every Lorentz cone z0 >= |z1| starts with the cuts z0 >= |z1_k|. After
    each MILP solve, every cone violated at the solution receives the
    tangent cut z0 >= u^T z1 with u = z1 / |z1|, and the MILP is solved
    again. The loop stops once every cone holds within tolerance.
    """

    name = "milp"

    def __init__(
        self,
        mip_rel_gap: float = consts.MIP_REL_GAP,
        time_limit: float = consts.MIP_TIME_LIMIT,
        cone_tolerance: float = consts.CONE_TOLERANCE,
        max_rounds: int = consts.MAX_OUTER_APPROXIMATION_ROUNDS,
    ):
        self.mip_rel_gap = mip_rel_gap
        self.time_limit = time_limit
        self.cone_tolerance = cone_tolerance
        self.max_rounds = max_rounds

    def is_available_for(self, prog: MathematicalProgram) -> bool:
        return not prog.generic_constraints() and len(prog.linear_costs()) == len(prog.costs())

    def solve(self, prog, initial_guess=None):
        # HiGHS takes no warm start; the initial guess is not used.
        n = prog.num_vars
        c = np.zeros(n)
        for binding in prog.linear_costs():
            np.add.at(c, binding.variables, binding.evaluator.a)

        lower, upper = _variable_bounds(prog)
        integrality = np.zeros(n)
        binary = prog.binary_variable_indices()
        integrality[binary] = 1
        lower[binary] = np.maximum(lower[binary], 0.0)
        upper[binary] = np.minimum(upper[binary], 1.0)

        rows: List[sparse.csr_matrix] = []
        row_lower: List[np.ndarray] = []
        row_upper: List[np.ndarray] = []
        for binding in prog.linear_constraints():
            evaluator = binding.evaluator
            rows.append(_scatter_rows(evaluator.A, binding.variables, n))
            row_lower.append(evaluator.lower_bound)
            row_upper.append(evaluator.upper_bound)

        cones = prog.lorentz_cone_constraints()
        for binding in cones:
            A, b = binding.evaluator.A, binding.evaluator.b
            cut_A = [-A[0]]
            cut_b = [b[0]]
            for k in range(1, A.shape[0]):
                for sign in (1.0, -1.0):
                    cut_A.append(sign * A[k] - A[0])
                    cut_b.append(b[0] - sign * b[k])
            rows.append(_scatter_rows(np.array(cut_A), binding.variables, n))
            row_lower.append(np.full(len(cut_b), -np.inf))
            row_upper.append(np.array(cut_b))

        start = time.monotonic()
        x = None
        for round_index in range(self.max_rounds):
            remaining = self.time_limit - (time.monotonic() - start)
            if remaining <= 0.0:
                return _failed_result(
                    prog, SolutionResult.ITERATION_LIMIT, self.name, "time limit reached", x
                )
            constraints = None
            if rows:
                constraints = optimize.LinearConstraint(
                    sparse.vstack(rows, format="csr"),
                    np.concatenate(row_lower),
                    np.concatenate(row_upper),
                )
            res = optimize.milp(
                c,
                integrality=integrality,
                bounds=optimize.Bounds(lower, upper),
                constraints=constraints,
                options={
                    "disp": False,
                    "mip_rel_gap": self.mip_rel_gap,
                    "time_limit": remaining,
                },
            )
            status = _MILP_STATUS.get(res.status, SolutionResult.NUMERICAL_ERROR)
            if status is not SolutionResult.SOLVED:
                x = None if res.x is None else np.asarray(res.x)
                return _failed_result(prog, status, self.name, res.message, x)

            x = np.asarray(res.x)
            cuts = [self._tangent_cut(binding, x[binding.variables], n) for binding in cones]
            cuts = [cut for cut in cuts if cut is not None]
            logger.debug(
                f"Outer approximation round {round_index}: objective {res.fun:.6g}, "
                f"{len(cuts)} violated cones"
            )
            if not cuts:
                return MathematicalProgramResult(
                    status=SolutionResult.SOLVED,
                    x_val=x,
                    optimal_cost=_total_cost(prog, x),
                    solver_name=self.name,
                    message=res.message,
                )
            for cut_row, cut_ub in cuts:
                rows.append(cut_row)
                row_lower.append(np.array([-np.inf]))
                row_upper.append(np.array([cut_ub]))

        return _failed_result(
            prog,
            SolutionResult.ITERATION_LIMIT,
            self.name,
            f"cones still violated after {self.max_rounds} outer approximation rounds",
            x,
        )

    def _tangent_cut(
        self,
        binding: Binding,
        x_local: np.ndarray,
        num_vars: int,
    ) -> Optional[Tuple[sparse.csr_matrix, float]]:
        A, b = binding.evaluator.A, binding.evaluator.b
        z = A @ x_local + b
        norm = np.linalg.norm(z[1:])
        if norm - z[0] <= self.cone_tolerance * max(1.0, norm) or norm < consts.DEGENERATE_NORM:
            return None
        u = z[1:] / norm
        row = u @ A[1:] - A[0]
        return _scatter_rows(row, binding.variables, num_vars), float(b[0] - u @ b[1:])


_MILP_STATUS: Dict[int, SolutionResult] = {
    0: SolutionResult.SOLVED,
    1: SolutionResult.ITERATION_LIMIT,
    2: SolutionResult.INFEASIBLE,
    3: SolutionResult.UNBOUNDED,
    4: SolutionResult.NUMERICAL_ERROR,
}


class OsqpSolver(Solver):
    """Convex quadratic programs with OSQP.

    The quadratic program is:
        minimize:   (1/2) * x^T * P * x + q^T * x
        subject to: l <= A * x <= u
    """

    name = "osqp"

    def __init__(
        self,
        eps_abs: float = consts.QP_EPS_ABS,
        eps_rel: float = consts.QP_EPS_REL,
        max_iter: int = consts.QP_MAX_ITERATIONS,
        verbose: bool = False,
    ):
        self.eps_abs = eps_abs
        self.eps_rel = eps_rel
        self.max_iter = max_iter
        self.verbose = verbose

    def is_available_for(self, prog: MathematicalProgram) -> bool:
        return (
            len(prog.binary_variable_indices()) == 0
            and not prog.lorentz_cone_constraints()
            and not prog.generic_constraints()
            and not prog.generic_costs()
        )

    def solve(self, prog, initial_guess=None):
        n = prog.num_vars
        P = np.zeros((n, n))
        q = np.zeros(n)
        constant = 0.0
        for binding in prog.quadratic_costs():
            v = binding.variables
            np.add.at(P, np.ix_(v, v), binding.evaluator.Q)
            np.add.at(q, v, binding.evaluator.b)
            constant += binding.evaluator.c
        for binding in prog.linear_costs():
            np.add.at(q, binding.variables, binding.evaluator.a)
            constant += binding.evaluator.b

        G_list = []
        l_list = []
        u_list = []
        for binding in prog.constraints():
            evaluator = binding.evaluator
            G_list.append(_scatter_rows(evaluator.A, binding.variables, n))
            l_list.append(evaluator.lower_bound)
            u_list.append(evaluator.upper_bound)

        # OSQP reads the upper triangular part of P.
        P_upper = sparse.triu(sparse.csc_matrix(P), format="csc")

        solver = osqp.OSQP()
        settings = dict(
            verbose=self.verbose,
            eps_abs=self.eps_abs,
            eps_rel=self.eps_rel,
            max_iter=self.max_iter,
        )
        if G_list:
            solver.setup(
                P=P_upper,
                q=q,
                A=sparse.vstack(G_list, format="csc"),
                l=np.concatenate(l_list),
                u=np.concatenate(u_list),
                **settings,
            )
        else:
            # No constraints
            solver.setup(P=P_upper, q=q, **settings)
        solver.warm_start(x=_starting_point(prog, initial_guess))

        result = solver.solve()
        status_text = str(result.info.status)
        status = _osqp_status(status_text)
        if status is not SolutionResult.SOLVED:
            return _failed_result(prog, status, self.name, status_text)
        x = np.asarray(result.x, dtype=np.float64)
        return MathematicalProgramResult(
            status=status,
            x_val=x,
            optimal_cost=float(0.5 * x @ P @ x + q @ x + constant),
            solver_name=self.name,
            message=status_text,
        )


def _osqp_status(status_text: str) -> SolutionResult:
    if status_text == "solved":
        return SolutionResult.SOLVED
    if status_text == "solved inaccurate":
        logger.warning("OSQP returned an inaccurate solution")
        return SolutionResult.SOLVED
    if status_text.startswith("primal infeasible"):
        return SolutionResult.INFEASIBLE
    if status_text.startswith("dual infeasible"):
        return SolutionResult.UNBOUNDED
    if status_text in ("maximum iterations reached", "run time limit reached"):
        return SolutionResult.ITERATION_LIMIT
    return SolutionResult.NUMERICAL_ERROR


class _BindingFunction:
    """Evaluates one binding on the full decision vector, caching the last point."""

    def __init__(self, binding: Binding, num_vars: int):
        self.binding = binding
        self._num_vars = num_vars
        self._x: Optional[np.ndarray] = None
        self._y = np.zeros(0)
        self._dy = np.zeros((0, num_vars))

    def __call__(self, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        if self._x is None or not np.array_equal(x, self._x):
            y, dy = self.binding.evaluator.eval_with_gradient(x[self.binding.variables])
            self._x = np.array(x, copy=True)
            self._y = y
            self._dy = _scatter_gradient(dy, self.binding.variables, self._num_vars)
        return self._y, self._dy


class NonlinearSolver(Solver):
    """Continuous nonlinear programs with SLSQP.

    Bounding boxes become variable bounds. Every other constraint row with
    lb == ub becomes an equality, and every finite side of the remaining
    rows becomes an inequality. Infinite bounds are skipped.
    """

    name = "slsqp"

    def __init__(
        self,
        max_iterations: int = consts.NLP_MAX_ITERATIONS,
        ftol: float = consts.NLP_FTOL,
        feasibility_tolerance: float = consts.DEFAULT_TOLERANCE,
    ):
        self.max_iterations = max_iterations
        self.ftol = ftol
        self.feasibility_tolerance = feasibility_tolerance

    def is_available_for(self, prog: MathematicalProgram) -> bool:
        return len(prog.binary_variable_indices()) == 0

    def solve(self, prog, initial_guess=None):
        n = prog.num_vars
        lower, upper = _variable_bounds(prog)
        x0 = np.clip(_starting_point(prog, initial_guess), lower, upper)

        scipy_constraints = []
        for binding in prog.constraints():
            if isinstance(binding.evaluator, BoundingBoxConstraint):
                continue
            scipy_constraints.extend(self._to_scipy_constraints(binding, n))

        cost_functions = [_BindingFunction(b, n) for b in prog.costs()]

        def objective(x):
            value, gradient = 0.0, np.zeros(n)
            for function in cost_functions:
                y, dy = function(x)
                value += y[0]
                gradient += dy[0]
            return value, gradient

        res = optimize.minimize(
            objective,
            x0,
            jac=True,
            method="SLSQP",
            bounds=optimize.Bounds(lower, upper),
            constraints=scipy_constraints,
            options={"maxiter": self.max_iterations, "ftol": self.ftol},
        )
        x = np.asarray(res.x, dtype=np.float64)
        feasible = _is_feasible(prog, x, self.feasibility_tolerance)
        if feasible and res.status in (0, 8):
            status = SolutionResult.SOLVED
        elif res.status == 9:
            status = SolutionResult.ITERATION_LIMIT
        elif res.status in (0, 4, 8):
            status = SolutionResult.INFEASIBLE
        else:
            status = SolutionResult.NUMERICAL_ERROR
        logger.debug(f"SLSQP finished with status {res.status} ({res.message}): {status}")
        return MathematicalProgramResult(
            status=status,
            x_val=x,
            optimal_cost=_total_cost(prog, x),
            solver_name=self.name,
            message=str(res.message),
        )

    @staticmethod
    def _to_scipy_constraints(binding: Binding, num_vars: int) -> List[dict]:
        function = _BindingFunction(binding, num_vars)
        lb = binding.evaluator.lower_bound
        ub = binding.evaluator.upper_bound
        equality = np.isfinite(lb) & (lb == ub)
        has_lower = np.isfinite(lb) & ~equality
        has_upper = np.isfinite(ub) & ~equality

        constraints = []
        if np.any(equality):
            constraints.append(
                {
                    "type": "eq",
                    "fun": lambda x: function(x)[0][equality] - lb[equality],
                    "jac": lambda x: function(x)[1][equality],
                }
            )
        if np.any(has_lower) or np.any(has_upper):
            constraints.append(
                {
                    "type": "ineq",
                    "fun": lambda x: np.concatenate(
                        [
                            function(x)[0][has_lower] - lb[has_lower],
                            ub[has_upper] - function(x)[0][has_upper],
                        ]
                    ),
                    "jac": lambda x: np.vstack(
                        [function(x)[1][has_lower], -function(x)[1][has_upper]]
                    ),
                }
            )
        return constraints


def choose_best_solver(prog: MathematicalProgram) -> Solver:
    """Pick the backend for a program.

    Raises:
        ProgramDefinitionError: If no backend can solve the program.
    """
    mixed_integer = MixedIntegerSolver()
    if len(prog.binary_variable_indices()) > 0:
        if not mixed_integer.is_available_for(prog):
            raise ProgramDefinitionError(
                "Programs with binary variables may only contain linear costs, "
                "linear constraints and Lorentz cone constraints"
            )
        return mixed_integer
    qp = OsqpSolver()
    if qp.is_available_for(prog) and prog.quadratic_costs():
        return qp
    if mixed_integer.is_available_for(prog):
        return mixed_integer
    if qp.is_available_for(prog):
        return qp
    return NonlinearSolver()


def solve(
    prog: MathematicalProgram,
    initial_guess: Optional[np.ndarray] = None,
    solver: Optional[Solver] = None,
) -> MathematicalProgramResult:
    """Solve a program with the given solver or the best available one.

    Args:
        prog: Program to solve.
        initial_guess: Optional starting point overriding the program's.
        solver: Optional backend. If None, `choose_best_solver` picks one.

    Returns:
        The solve outcome. Failures are reported through its status.
    """
    if solver is None:
        solver = choose_best_solver(prog)
    logger.debug(f"Solving {prog!r} with {solver.name}")
    return solver.solve(prog, initial_guess)

"""Evaluators: the constraints and costs a mathematical program is made of.

Every evaluator maps a vector of bound decision variables x to an output
vector y. It can be evaluated in two modes selected at the call site:

* `eval(x)` computes the value only;
* `eval_with_gradient(x)` computes the value and its Jacobian dy/dx.
"""

import abc
from typing import Optional, Tuple

import numpy as np
import numpy.typing as npt

from ..constants import DEFAULT_TOLERANCE
from ..exceptions import ConstraintDefinitionError, CostDefinitionError


class EvaluatorBase(abc.ABC):
    """Abstract base class of all constraints and costs.

    Subclasses implement `_do_eval`, which returns the output and, when
    requested, its Jacobian with respect to the bound variables.
    """

    def __init__(self, num_outputs: int, num_vars: int, description: str = ""):
        self._num_outputs = num_outputs
        self._num_vars = num_vars
        self.description = description

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(num_outputs={self._num_outputs}, "
            f"num_vars={self._num_vars}, description={self.description!r})"
        )

    @property
    def num_outputs(self) -> int:
        return self._num_outputs

    @property
    def num_vars(self) -> int:
        return self._num_vars

    def eval(self, x: npt.ArrayLike) -> np.ndarray:
        """Evaluate the output y(x)."""
        y, _ = self._do_eval(self._check_input(x), compute_gradient=False)
        return y

    def eval_with_gradient(self, x: npt.ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
        """Evaluate y(x) and its Jacobian dy/dx of shape (num_outputs, num_vars)."""
        y, dy = self._do_eval(self._check_input(x), compute_gradient=True)
        return y, dy

    @abc.abstractmethod
    def _do_eval(
        self,
        x: np.ndarray,
        compute_gradient: bool,
    ) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """Compute y(x) and, if compute_gradient is True, dy/dx."""
        raise NotImplementedError

    def _check_input(self, x: npt.ArrayLike) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        if x.shape != (self._num_vars,):
            raise ValueError(
                f"{self.__class__.__name__} expects {self._num_vars} variables "
                f"but got an input of shape {x.shape}"
            )
        return x


class Constraint(EvaluatorBase):
    """A constraint lower_bound <= y(x) <= upper_bound."""

    def __init__(
        self,
        num_constraints: int,
        num_vars: int,
        lower_bound: npt.ArrayLike,
        upper_bound: npt.ArrayLike,
        description: str = "",
    ):
        super().__init__(num_constraints, num_vars, description)
        self._lower_bound = np.zeros(num_constraints)
        self._upper_bound = np.zeros(num_constraints)
        self._set_bounds(lower_bound, upper_bound)

    @property
    def lower_bound(self) -> np.ndarray:
        return self._lower_bound.copy()

    @property
    def upper_bound(self) -> np.ndarray:
        return self._upper_bound.copy()

    def check_satisfied(self, x: npt.ArrayLike, tol: float = DEFAULT_TOLERANCE) -> bool:
        """Returns True if every output lies within its bounds up to tol."""
        return bool(np.all(self.violation(x) <= tol))

    def violation(self, x: npt.ArrayLike) -> np.ndarray:
        """Elementwise distance of y(x) outside [lower_bound, upper_bound]."""
        y = self.eval(x)
        return np.maximum(self._lower_bound - y, 0.0) + np.maximum(y - self._upper_bound, 0.0)

    def _set_bounds(self, lower_bound: npt.ArrayLike, upper_bound: npt.ArrayLike) -> None:
        lower_bound = self._check_bound(lower_bound, "lower bound")
        upper_bound = self._check_bound(upper_bound, "upper bound")
        if np.any(lower_bound > upper_bound):
            raise ConstraintDefinitionError(
                f"{self.__class__.__name__} lower bound {lower_bound} exceeds "
                f"upper bound {upper_bound}"
            )
        self._lower_bound = lower_bound
        self._upper_bound = upper_bound

    def _check_bound(self, bound: npt.ArrayLike, label: str) -> np.ndarray:
        bound = np.array(bound, dtype=np.float64)
        if bound.ndim == 0:
            bound = np.full(self.num_outputs, float(bound))
        if bound.shape != (self.num_outputs,):
            raise ConstraintDefinitionError(
                f"{self.__class__.__name__} {label} should have shape "
                f"({self.num_outputs},) but got {bound.shape}"
            )
        if np.any(np.isnan(bound)):
            raise ConstraintDefinitionError(f"{self.__class__.__name__} {label} is NaN")
        return bound


class MutableBounds:
    """Mixin for constraints whose bounds may change after construction."""

    def set_bounds(self, new_lb: npt.ArrayLike, new_ub: npt.ArrayLike) -> None:
        self._set_bounds(new_lb, new_ub)

    def update_lower_bound(self, new_lb: npt.ArrayLike) -> None:
        self._set_bounds(new_lb, self._upper_bound)

    def update_upper_bound(self, new_ub: npt.ArrayLike) -> None:
        self._set_bounds(self._lower_bound, new_ub)


class Cost(EvaluatorBase):
    """A scalar cost c(x)."""

    def __init__(self, num_vars: int, description: str = ""):
        super().__init__(1, num_vars, description)


class LinearConstraint(MutableBounds, Constraint):
    """lb <= A x <= ub."""

    def __init__(
        self,
        A: npt.ArrayLike,
        lb: npt.ArrayLike,
        ub: npt.ArrayLike,
        description: str = "",
    ):
        A = np.atleast_2d(np.asarray(A, dtype=np.float64))
        if A.ndim != 2:
            raise ConstraintDefinitionError(
                f"{self.__class__.__name__} expects a matrix A but got shape {A.shape}"
            )
        self.A = A
        super().__init__(A.shape[0], A.shape[1], lb, ub, description)

    def _do_eval(self, x, compute_gradient):
        return self.A @ x, (self.A.copy() if compute_gradient else None)


class LinearEqualityConstraint(LinearConstraint):
    """A x = b."""

    def __init__(self, A: npt.ArrayLike, b: npt.ArrayLike, description: str = ""):
        super().__init__(A, b, b, description)


class BoundingBoxConstraint(LinearConstraint):
    """lb <= x <= ub."""

    def __init__(self, lb: npt.ArrayLike, ub: npt.ArrayLike, description: str = ""):
        lb = np.atleast_1d(np.asarray(lb, dtype=np.float64))
        super().__init__(np.eye(lb.shape[0]), lb, ub, description)


class LorentzConeConstraint(Constraint):
    """z = A x + b lies in the Lorentz cone z[0] >= |z[1:]|.

    Evaluated as y = [z0, z0^2 - |z[1:]|^2] with y >= 0, which is the smooth
    form nonlinear solvers use. Mixed-integer solvers read A and b directly.
    """

    def __init__(self, A: npt.ArrayLike, b: npt.ArrayLike, description: str = ""):
        A = np.atleast_2d(np.asarray(A, dtype=np.float64))
        b = np.asarray(b, dtype=np.float64)
        if A.shape[0] < 2 or b.shape != (A.shape[0],):
            raise ConstraintDefinitionError(
                f"{self.__class__.__name__} expects A of shape (m, n) with m >= 2 and "
                f"b of shape (m,), got {A.shape} and {b.shape}"
            )
        self.A = A
        self.b = b
        super().__init__(2, A.shape[1], [0.0, 0.0], [np.inf, np.inf], description)

    def _do_eval(self, x, compute_gradient):
        z = self.A @ x + self.b
        y = np.array([z[0], z[0] ** 2 - z[1:] @ z[1:]])
        if not compute_gradient:
            return y, None
        dy = np.vstack([self.A[0], 2.0 * z[0] * self.A[0] - 2.0 * z[1:] @ self.A[1:]])
        return y, dy


class LinearCost(Cost):
    """a^T x + b."""

    def __init__(self, a: npt.ArrayLike, b: float = 0.0, description: str = ""):
        self.a = np.atleast_1d(np.asarray(a, dtype=np.float64))
        if self.a.ndim != 1:
            raise CostDefinitionError(
                f"{self.__class__.__name__} expects a vector a but got shape {self.a.shape}"
            )
        self.b = float(b)
        super().__init__(self.a.shape[0], description)

    def _do_eval(self, x, compute_gradient):
        y = np.array([self.a @ x + self.b])
        return y, (self.a[np.newaxis, :].copy() if compute_gradient else None)


class QuadraticCost(Cost):
    """0.5 x^T Q x + b^T x + c."""

    def __init__(
        self,
        Q: npt.ArrayLike,
        b: npt.ArrayLike,
        c: float = 0.0,
        description: str = "",
    ):
        Q = np.atleast_2d(np.asarray(Q, dtype=np.float64))
        b = np.atleast_1d(np.asarray(b, dtype=np.float64))
        if Q.shape[0] != Q.shape[1] or b.shape != (Q.shape[0],):
            raise CostDefinitionError(
                f"{self.__class__.__name__} expects Q of shape (n, n) and b of shape "
                f"(n,), got {Q.shape} and {b.shape}"
            )
        self.Q = 0.5 * (Q + Q.T)
        self.b = b
        self.c = float(c)
        super().__init__(Q.shape[0], description)

    def _do_eval(self, x, compute_gradient):
        y = np.array([0.5 * x @ self.Q @ x + self.b @ x + self.c])
        if not compute_gradient:
            return y, None
        return y, (self.Q @ x + self.b)[np.newaxis, :]

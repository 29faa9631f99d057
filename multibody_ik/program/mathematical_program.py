"""A mathematical program: decision variables plus bound constraints and costs.

Decision variables are identified by their integer index into the program's
decision vector. `new_continuous_variables` and `new_binary_variables`
return arrays of such indices, shaped like the requested block, which can
then be sliced and passed to the `add_*` methods.
"""

import enum
import logging
from typing import List, NamedTuple, Optional

import numpy as np
import numpy.typing as npt

from ..exceptions import ProgramDefinitionError
from .evaluators import (
    BoundingBoxConstraint,
    Constraint,
    Cost,
    EvaluatorBase,
    LinearConstraint,
    LinearCost,
    LinearEqualityConstraint,
    LorentzConeConstraint,
    QuadraticCost,
)

logger = logging.getLogger(__name__)


class VarType(enum.Enum):
    CONTINUOUS = "continuous"
    BINARY = "binary"


class Binding(NamedTuple):
    """An evaluator bound to a list of decision variables.

    Attributes:
        evaluator: The constraint or cost.
        variables: Flat array of decision variable indices, in the order the
            evaluator expects its input.
    """

    evaluator: EvaluatorBase
    variables: np.ndarray


class MathematicalProgram:
    """Decision variables, constraints and costs of an optimization problem."""

    def __init__(self):
        self._names: List[str] = []
        self._types: List[VarType] = []
        self._initial_guess = np.zeros(0)
        self._constraints: List[Binding] = []
        self._costs: List[Binding] = []

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(num_vars={self.num_vars}, "
            f"num_binary={len(self.binary_variable_indices())}, "
            f"num_constraints={len(self._constraints)}, num_costs={len(self._costs)})"
        )

    @property
    def num_vars(self) -> int:
        return len(self._names)

    @property
    def variable_types(self) -> List[VarType]:
        return list(self._types)

    @property
    def variable_names(self) -> List[str]:
        return list(self._names)

    @property
    def initial_guess(self) -> np.ndarray:
        """Initial guess of every decision variable, NaN where unset."""
        return self._initial_guess.copy()

    def new_continuous_variables(
        self,
        rows: int,
        cols: Optional[int] = None,
        name: str = "x",
    ) -> np.ndarray:
        """Add a block of continuous variables.

        Args:
            rows: Number of rows of the block.
            cols: Number of columns. If None, a vector of `rows` variables
                is created.
            name: Base name used to label the variables.

        Returns:
            Array of variable indices of shape (rows,) or (rows, cols).
        """
        return self._new_variables(rows, cols, name, VarType.CONTINUOUS)

    def new_binary_variables(
        self,
        rows: int,
        cols: Optional[int] = None,
        name: str = "b",
    ) -> np.ndarray:
        """Add a block of binary variables. Same conventions as
        `new_continuous_variables`."""
        return self._new_variables(rows, cols, name, VarType.BINARY)

    def binary_variable_indices(self) -> np.ndarray:
        return np.array(
            [i for i, var_type in enumerate(self._types) if var_type is VarType.BINARY],
            dtype=int,
        )

    def set_initial_guess(self, variables: npt.ArrayLike, values: npt.ArrayLike) -> None:
        variables = self._check_variables(variables)
        values = np.broadcast_to(np.asarray(values, dtype=np.float64).ravel(), variables.shape)
        self._initial_guess[variables] = values

    def constraints(self) -> List[Binding]:
        """Every constraint binding, in insertion order."""
        return list(self._constraints)

    def costs(self) -> List[Binding]:
        """Every cost binding, in insertion order."""
        return list(self._costs)

    def bounding_box_constraints(self) -> List[Binding]:
        return [b for b in self._constraints if isinstance(b.evaluator, BoundingBoxConstraint)]

    def linear_constraints(self) -> List[Binding]:
        """Linear constraints other than bounding boxes."""
        return [
            b
            for b in self._constraints
            if isinstance(b.evaluator, LinearConstraint)
            and not isinstance(b.evaluator, BoundingBoxConstraint)
        ]

    def lorentz_cone_constraints(self) -> List[Binding]:
        return [b for b in self._constraints if isinstance(b.evaluator, LorentzConeConstraint)]

    def generic_constraints(self) -> List[Binding]:
        """Constraints that are neither linear nor Lorentz cones."""
        return [
            b
            for b in self._constraints
            if not isinstance(b.evaluator, (LinearConstraint, LorentzConeConstraint))
        ]

    def linear_costs(self) -> List[Binding]:
        return [b for b in self._costs if isinstance(b.evaluator, LinearCost)]

    def quadratic_costs(self) -> List[Binding]:
        return [b for b in self._costs if isinstance(b.evaluator, QuadraticCost)]

    def generic_costs(self) -> List[Binding]:
        return [
            b for b in self._costs if not isinstance(b.evaluator, (LinearCost, QuadraticCost))
        ]

    def add_constraint(self, constraint: Constraint, variables: npt.ArrayLike) -> Binding:
        """Bind a constraint to decision variables and register it.

        Raises:
            ProgramDefinitionError: If the variables do not match the
                constraint input size or are not variables of this program.
        """
        if not isinstance(constraint, Constraint):
            raise ProgramDefinitionError(f"{constraint!r} is not a Constraint")
        binding = Binding(constraint, self._check_binding(constraint, variables))
        self._constraints.append(binding)
        return binding

    def add_cost(self, cost: Cost, variables: npt.ArrayLike) -> Binding:
        """Bind a cost to decision variables and register it."""
        if not isinstance(cost, Cost):
            raise ProgramDefinitionError(f"{cost!r} is not a Cost")
        binding = Binding(cost, self._check_binding(cost, variables))
        self._costs.append(binding)
        return binding

    def add_linear_constraint(
        self,
        A: npt.ArrayLike,
        lb: npt.ArrayLike,
        ub: npt.ArrayLike,
        variables: npt.ArrayLike,
    ) -> Binding:
        return self.add_constraint(LinearConstraint(A, lb, ub), variables)

    def add_linear_equality_constraint(
        self,
        A: npt.ArrayLike,
        b: npt.ArrayLike,
        variables: npt.ArrayLike,
    ) -> Binding:
        return self.add_constraint(LinearEqualityConstraint(A, b), variables)

    def add_bounding_box_constraint(
        self,
        lb: npt.ArrayLike,
        ub: npt.ArrayLike,
        variables: npt.ArrayLike,
    ) -> Binding:
        """lb <= variables <= ub. Scalar bounds are broadcast."""
        size = np.asarray(variables).size
        lb = np.broadcast_to(np.asarray(lb, dtype=np.float64).ravel(), (size,))
        ub = np.broadcast_to(np.asarray(ub, dtype=np.float64).ravel(), (size,))
        return self.add_constraint(BoundingBoxConstraint(lb, ub), variables)

    def add_lorentz_cone_constraint(
        self,
        A: npt.ArrayLike,
        b: npt.ArrayLike,
        variables: npt.ArrayLike,
    ) -> Binding:
        """(A x + b)[0] >= |(A x + b)[1:]|."""
        return self.add_constraint(LorentzConeConstraint(A, b), variables)

    def add_linear_cost(
        self,
        a: npt.ArrayLike,
        variables: npt.ArrayLike,
        b: float = 0.0,
    ) -> Binding:
        return self.add_cost(LinearCost(a, b), variables)

    def add_quadratic_cost(
        self,
        Q: npt.ArrayLike,
        b: npt.ArrayLike,
        variables: npt.ArrayLike,
        c: float = 0.0,
    ) -> Binding:
        """0.5 x^T Q x + b^T x + c."""
        return self.add_cost(QuadraticCost(Q, b, c), variables)

    def add_quadratic_error_cost(
        self,
        Q: npt.ArrayLike,
        x_desired: npt.ArrayLike,
        variables: npt.ArrayLike,
    ) -> Binding:
        """(x - x_desired)^T Q (x - x_desired)."""
        Q = np.atleast_2d(np.asarray(Q, dtype=np.float64))
        x_desired = np.asarray(x_desired, dtype=np.float64).ravel()
        return self.add_quadratic_cost(
            2.0 * Q,
            -2.0 * Q @ x_desired,
            variables,
            c=float(x_desired @ Q @ x_desired),
        )

    def _new_variables(
        self,
        rows: int,
        cols: Optional[int],
        name: str,
        var_type: VarType,
    ) -> np.ndarray:
        if rows < 0 or (cols is not None and cols < 0):
            raise ProgramDefinitionError(f"Invalid variable block shape ({rows}, {cols})")
        shape = (rows,) if cols is None else (rows, cols)
        start = self.num_vars
        indices = np.arange(start, start + int(np.prod(shape)), dtype=int).reshape(shape)
        for index in np.ndindex(*shape):
            self._names.append(f"{name}({','.join(str(i) for i in index)})")
            self._types.append(var_type)
        self._initial_guess = np.concatenate(
            [self._initial_guess, np.full(indices.size, np.nan)]
        )
        logger.debug(f"Added {indices.size} {var_type.value} variables named {name}")
        return indices

    def _check_variables(self, variables: npt.ArrayLike) -> np.ndarray:
        variables = np.asarray(variables)
        if variables.size and not np.issubdtype(variables.dtype, np.integer):
            raise ProgramDefinitionError(
                f"Decision variables must be integer indices, got dtype {variables.dtype}"
            )
        variables = variables.astype(int).ravel()
        if np.any(variables < 0) or np.any(variables >= self.num_vars):
            raise ProgramDefinitionError(
                f"Decision variables {variables} are not variables of this program "
                f"with {self.num_vars} variables"
            )
        return variables

    def _check_binding(self, evaluator: EvaluatorBase, variables: npt.ArrayLike) -> np.ndarray:
        variables = self._check_variables(variables)
        if variables.size != evaluator.num_vars:
            raise ProgramDefinitionError(
                f"{evaluator.__class__.__name__} expects {evaluator.num_vars} variables "
                f"but was bound to {variables.size}"
            )
        return variables

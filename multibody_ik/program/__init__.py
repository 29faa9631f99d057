"""Mathematical programs and their solvers."""

from .evaluators import (
    BoundingBoxConstraint,
    Constraint,
    Cost,
    EvaluatorBase,
    LinearConstraint,
    LinearCost,
    LinearEqualityConstraint,
    LorentzConeConstraint,
    MutableBounds,
    QuadraticCost,
)
from .mathematical_program import Binding, MathematicalProgram, VarType
from .solvers import (
    MathematicalProgramResult,
    MixedIntegerSolver,
    NonlinearSolver,
    OsqpSolver,
    SolutionResult,
    Solver,
    choose_best_solver,
    solve,
)

__all__ = [
    "Binding",
    "BoundingBoxConstraint",
    "Constraint",
    "Cost",
    "EvaluatorBase",
    "LinearConstraint",
    "LinearCost",
    "LinearEqualityConstraint",
    "LorentzConeConstraint",
    "MathematicalProgram",
    "MathematicalProgramResult",
    "MixedIntegerSolver",
    "MutableBounds",
    "NonlinearSolver",
    "OsqpSolver",
    "QuadraticCost",
    "SolutionResult",
    "Solver",
    "VarType",
    "choose_best_solver",
    "solve",
]

"""Mixed-integer convex relaxation of SO(3).

A rotation matrix R with columns c0, c1, c2 satisfies

* |c_i| = 1 and |c_i +/- c_j| = sqrt(2) for i != j (same for the rows);
* c0 x c1 = c2.

The convex parts of these conditions (norms bounded above) are added as
Lorentz cones or, for linear programs, as polyhedral outer approximations.
The non-convex parts (norms bounded below, bilinear cross products) are
relaxed by binning quantities u in [-m, m] onto the breakpoints

    phi_k = m * (-1 + k / N),  k = 0, ..., 2N

with SOS2 weights lambda: u = sum_k lambda_k phi_k and the piecewise-linear
square s = sum_k lambda_k phi_k^2 >= u^2. The relaxation only ever
enlarges SO(3), and refining N by an integer factor tightens it.
"""

import itertools
import logging
from typing import List, Sequence, Tuple

import numpy as np

from ..program import MathematicalProgram
from .options import GlobalInverseKinematicsOptions, IntervalBinning, RelaxationApproach

logger = logging.getLogger(__name__)

_SIGN_PATTERNS = np.array(list(itertools.product((1.0, -1.0), repeat=3)))


def breakpoints(half_range: float, num_intervals_per_half_axis: int) -> np.ndarray:
    """Breakpoints phi_k = half_range * (-1 + k / N), k = 0, ..., 2N."""
    return half_range * np.linspace(-1.0, 1.0, 2 * num_intervals_per_half_axis + 1)


def add_sos2_constraint(
    prog: MathematicalProgram,
    lambdas: np.ndarray,
    binning: IntervalBinning,
) -> np.ndarray:
    """Allow at most two consecutive entries of lambdas to be non-zero.

    Args:
        prog: Program to add the constraint to.
        lambdas: Variables of the weights, one per breakpoint.
        binning: Encoding of the active interval.

    Returns:
        The binary variables that select the active interval.
    """
    num_intervals = len(lambdas) - 1
    if binning is IntervalBinning.LINEAR:
        z = prog.new_binary_variables(num_intervals, name="interval")
        prog.add_linear_equality_constraint(np.ones((1, num_intervals)), [1.0], z)
        for k, lambda_k in enumerate(lambdas):
            adjacent = [i for i in (k - 1, k) if 0 <= i < num_intervals]
            A = np.concatenate([[1.0], -np.ones(len(adjacent))])[np.newaxis, :]
            prog.add_linear_constraint(A, [-np.inf], [0.0], np.concatenate([[lambda_k], z[adjacent]]))
        return z

    num_bits = int(np.log2(num_intervals))
    y = prog.new_binary_variables(num_bits, name="gray")
    # Interval k is selected by the Gray code of k.
    codes = [k ^ (k >> 1) for k in range(num_intervals)]
    for bit in range(num_bits):
        ones, zeros = [], []
        for k in range(num_intervals + 1):
            bits = {(codes[i] >> bit) & 1 for i in (k - 1, k) if 0 <= i < num_intervals}
            if bits == {1}:
                ones.append(k)
            elif bits == {0}:
                zeros.append(k)
        if ones:
            A = np.concatenate([np.ones(len(ones)), [-1.0]])[np.newaxis, :]
            prog.add_linear_constraint(
                A, [-np.inf], [0.0], np.concatenate([lambdas[ones], [y[bit]]])
            )
        if zeros:
            A = np.ones((1, len(zeros) + 1))
            prog.add_linear_constraint(
                A, [-np.inf], [1.0], np.concatenate([lambdas[zeros], [y[bit]]])
            )
    return y


def add_binned_square(
    prog: MathematicalProgram,
    variables: Sequence[int],
    coefficients: Sequence[float],
    half_range: float,
    options: GlobalInverseKinematicsOptions,
) -> Tuple[int, np.ndarray]:
    """Piecewise-linear upper surrogate s >= u^2 of u = coefficients . variables.

    Args:
        prog: Program to add the variables and constraints to.
        variables: Variables u is a combination of.
        coefficients: Coefficients of the combination.
        half_range: Bound m with |u| <= m.
        options: Relaxation options.

    Returns:
        Tuple (s, phi): the variable s and the breakpoints used.
    """
    variables = np.asarray(variables, dtype=int)
    coefficients = np.asarray(coefficients, dtype=np.float64)
    phi = breakpoints(half_range, options.num_intervals_per_half_axis)
    lambdas = prog.new_continuous_variables(len(phi), name="lambda")
    s = prog.new_continuous_variables(1, name="square")
    prog.add_bounding_box_constraint(0.0, 1.0, lambdas)
    prog.add_bounding_box_constraint(0.0, half_range**2, s)
    prog.add_linear_equality_constraint(np.ones((1, len(phi))), [1.0], lambdas)
    prog.add_linear_equality_constraint(
        np.concatenate([coefficients, -phi])[np.newaxis, :],
        [0.0],
        np.concatenate([variables, lambdas]),
    )
    prog.add_linear_equality_constraint(
        np.concatenate([[1.0], -(phi**2)])[np.newaxis, :],
        [0.0],
        np.concatenate([s, lambdas]),
    )
    add_sos2_constraint(prog, lambdas, options.interval_binning)
    return int(s[0]), phi


def _add_norm_upper_bound(
    prog: MathematicalProgram,
    variables: np.ndarray,
    coefficients: np.ndarray,
    bound: float,
    options: GlobalInverseKinematicsOptions,
) -> None:
    """|v| <= bound for v = sum_j coefficients[j] * variables[j], a 3-vector."""
    # coefficients has shape (3, len(variables)).
    if options.approach is RelaxationApproach.SECOND_ORDER_CONE and not options.linear_constraint_only:
        A = np.vstack([np.zeros(coefficients.shape[1]), coefficients])
        b = np.array([bound, 0.0, 0.0, 0.0])
        prog.add_lorentz_cone_constraint(A, b, variables)
    else:
        # s . v <= |v| |s| for every sign pattern s.
        prog.add_linear_constraint(
            _SIGN_PATTERNS @ coefficients,
            np.full(len(_SIGN_PATTERNS), -np.inf),
            np.full(len(_SIGN_PATTERNS), bound * np.sqrt(3.0)),
            variables,
        )


def _add_orthonormal_upper_bounds(
    prog: MathematicalProgram,
    vectors: List[np.ndarray],
    options: GlobalInverseKinematicsOptions,
) -> None:
    for v in vectors:
        _add_norm_upper_bound(prog, v, np.eye(3), 1.0, options)
    for v_i, v_j in itertools.combinations(vectors, 2):
        for sign in (1.0, -1.0):
            _add_norm_upper_bound(
                prog,
                np.concatenate([v_i, v_j]),
                np.hstack([np.eye(3), sign * np.eye(3)]),
                np.sqrt(2.0),
                options,
            )


def _add_orthonormal_lower_bounds(
    prog: MathematicalProgram,
    R: np.ndarray,
    options: GlobalInverseKinematicsOptions,
) -> None:
    for j in range(3):
        squares = [add_binned_square(prog, [R[i, j]], [1.0], 1.0, options)[0] for i in range(3)]
        prog.add_linear_constraint(np.ones((1, 3)), [1.0], [np.inf], squares)
    for j, k in itertools.combinations(range(3), 2):
        for sign in (1.0, -1.0):
            squares = [
                add_binned_square(prog, [R[i, j], R[i, k]], [1.0, sign], 2.0, options)[0]
                for i in range(3)
            ]
            prog.add_linear_constraint(np.ones((1, 3)), [2.0], [np.inf], squares)


def _add_bilinear_product(
    prog: MathematicalProgram,
    x: int,
    y: int,
    options: GlobalInverseKinematicsOptions,
) -> int:
    """Variable w relaxing w = x * y for x, y in [-1, 1].

    With U = (x + y)^2 and V = (x - y)^2, x * y = (U - V) / 4. Each square is
    bounded above by its binned surrogate and below by the tangents at the
    breakpoints, which brackets 4w from both sides.
    """
    s_sum, phi = add_binned_square(prog, [x, y], [1.0, 1.0], 2.0, options)
    s_diff, _ = add_binned_square(prog, [x, y], [1.0, -1.0], 2.0, options)
    w = prog.new_continuous_variables(1, name="product")
    prog.add_bounding_box_constraint(-1.0, 1.0, w)
    variables = np.array([w[0], s_sum, s_diff, x, y])
    # 4w <= s_sum - (2 phi (x - y) - phi^2)
    upper = np.column_stack(
        [np.full(len(phi), 4.0), -np.ones(len(phi)), np.zeros(len(phi)), 2.0 * phi, -2.0 * phi]
    )
    prog.add_linear_constraint(upper, np.full(len(phi), -np.inf), phi**2, variables)
    # 4w >= (2 phi (x + y) - phi^2) - s_diff
    lower = np.column_stack(
        [np.full(len(phi), 4.0), np.zeros(len(phi)), np.ones(len(phi)), -2.0 * phi, -2.0 * phi]
    )
    prog.add_linear_constraint(lower, -(phi**2), np.full(len(phi), np.inf), variables)
    return int(w[0])


def _add_cross_product(
    prog: MathematicalProgram,
    R: np.ndarray,
    options: GlobalInverseKinematicsOptions,
) -> None:
    """c2 = c0 x c1 with every product c0[a] * c1[b], a != b, relaxed."""
    products = {}
    for a, b in itertools.permutations(range(3), 2):
        products[a, b] = _add_bilinear_product(prog, R[a, 0], R[b, 1], options)
    for i in range(3):
        a, b = (i + 1) % 3, (i + 2) % 3
        prog.add_linear_equality_constraint(
            np.array([[1.0, -1.0, -1.0]]),
            [0.0],
            [products[a, b], products[b, a], R[i, 2]],
        )


def add_rotation_matrix_relaxation(
    prog: MathematicalProgram,
    R: np.ndarray,
    options: GlobalInverseKinematicsOptions,
) -> None:
    """Constrain the 3x3 block of variables R to a relaxation of SO(3).

    Args:
        prog: Program holding the variables.
        R: Variables of the rotation matrix, shape (3, 3).
        options: Relaxation options.
    """
    num_vars = prog.num_vars
    prog.add_bounding_box_constraint(-1.0, 1.0, R)
    columns = [R[:, j] for j in range(3)]
    rows = [R[i, :] for i in range(3)]
    _add_orthonormal_upper_bounds(prog, columns, options)
    _add_orthonormal_upper_bounds(prog, rows, options)
    _add_orthonormal_lower_bounds(prog, R, options)
    _add_cross_product(prog, R, options)
    logger.debug(
        f"Relaxed a rotation matrix with {prog.num_vars - num_vars} auxiliary variables "
        f"({options!r})"
    )

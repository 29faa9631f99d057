"""Unit quaternion constraint implementation."""

from typing import List

import numpy as np
import pinocchio as pin

from ..configuration import quaternion_blocks
from ..program import Binding, Constraint, MathematicalProgram


class UnitQuaternionConstraint(Constraint):
    """Constrain four decision variables v to unit norm: |v|^2 - 1 = 0.

    The residual does not depend on the quaternion ordering, so it applies
    equally to [x, y, z, w] and [w, x, y, z] blocks.
    """

    def __init__(self):
        super().__init__(1, 4, [0.0], [0.0], description="unit quaternion")

    def _do_eval(self, x, compute_gradient):
        y = np.array([x @ x - 1.0])
        return y, (2.0 * x[np.newaxis, :] if compute_gradient else None)


def add_unit_quaternion_constraint_on_plant(
    plant: pin.Model,
    q_vars: np.ndarray,
    prog: MathematicalProgram,
) -> List[Binding]:
    """Add a unit-norm constraint on every quaternion block of the plant.

    Each quaternion block also receives a [-1, 1] bounding box, which helps
    nonlinear solvers stay close to the unit sphere.

    Args:
        plant: Pinocchio model.
        q_vars: Decision variables of the generalized positions, shape (nq,).
        prog: Program to add the constraints to.

    Returns:
        The added bindings.
    """
    q_vars = np.asarray(q_vars)
    bindings = []
    for block in quaternion_blocks(plant):
        bindings.append(prog.add_constraint(UnitQuaternionConstraint(), q_vars[block]))
        bindings.append(prog.add_bounding_box_constraint(-1.0, 1.0, q_vars[block]))
    return bindings

"""Base class for constraints evaluated on a plant."""

import abc
from typing import Optional, Tuple

import numpy as np
import numpy.typing as npt
import pinocchio as pin

from ..configuration import Configuration
from ..program import Constraint
from .kinematics import check_plant_context


class KinematicConstraint(Constraint):
    """A constraint on the generalized positions q of a plant.

    The decision variables are q, of size plant.nq. Every evaluation takes
    exclusive access to the plant context, updates it to q and then calls
    `_evaluate`.

    Attributes:
        plant: Model the constraint is defined on.
        context: Evaluation context of the plant.
    """

    def __init__(
        self,
        plant: pin.Model,
        plant_context: Configuration,
        num_constraints: int,
        lower_bound: npt.ArrayLike,
        upper_bound: npt.ArrayLike,
        num_vars: Optional[int] = None,
        description: str = "",
    ):
        self.plant = plant
        self.context = check_plant_context(self.__class__.__name__, plant, plant_context)
        if num_vars is None:
            num_vars = plant.nq
        super().__init__(num_constraints, num_vars, lower_bound, upper_bound, description)

    def _do_eval(self, x, compute_gradient):
        q = x[: self.plant.nq]
        with self.context.evaluation(q, compute_jacobians=compute_gradient) as configuration:
            return self._evaluate(configuration, x, compute_gradient)

    @abc.abstractmethod
    def _evaluate(
        self,
        configuration: Configuration,
        x: np.ndarray,
        compute_gradient: bool,
    ) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """Compute the constraint value, and its gradient if requested, at the
        configuration the context was updated to."""
        raise NotImplementedError

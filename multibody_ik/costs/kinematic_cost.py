"""Base class for costs evaluated on a plant."""

import abc
from typing import Optional, Tuple

import numpy as np
import pinocchio as pin

from ..configuration import Configuration
from ..constraints.kinematics import check_plant_context
from ..program import Cost


class KinematicCost(Cost):
    """A scalar cost on the generalized positions q of a plant.

    Attributes:
        plant: Model the cost is defined on.
        context: Evaluation context of the plant.
    """

    def __init__(self, plant: pin.Model, plant_context: Configuration, description: str = ""):
        self.plant = plant
        self.context = check_plant_context(self.__class__.__name__, plant, plant_context)
        super().__init__(plant.nq, description)

    def _do_eval(self, x, compute_gradient):
        with self.context.evaluation(x, compute_jacobians=compute_gradient) as configuration:
            value, gradient = self._evaluate(configuration, compute_gradient)
        if not compute_gradient:
            return np.array([value]), None
        return np.array([value]), gradient[np.newaxis, :]

    @abc.abstractmethod
    def _evaluate(
        self,
        configuration: Configuration,
        compute_gradient: bool,
    ) -> Tuple[float, Optional[np.ndarray]]:
        """Compute the cost, and its gradient of shape (nq,) if requested."""
        raise NotImplementedError

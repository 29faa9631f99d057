"""Minimum distance constraint implementation.

Every pair of geometries closer than the influence distance contributes a
penalty. With d_min the minimum distance and d_inf the influence distance,
the distance d of a pair is rescaled to

    x = (d - d_inf) / (d_inf - d_min)

so that x = 0 at the influence distance and x = -1 at the minimum distance.
The constraint value is the sum of penalties phi(x) normalized by
phi(-1), bounded above by 1: a single pair at exactly d_min saturates it.
"""

import enum
from typing import Callable, Tuple, Union

import numpy as np
import pinocchio as pin

from .. import constants as consts
from ..collision import DistanceQuery, distance_jacobian
from ..configuration import Configuration
from ..exceptions import ConstraintDefinitionError
from .kinematic_constraint import KinematicConstraint

PenaltyCallable = Callable[[float], Tuple[float, float]]


def quadratically_smoothed_hinge_loss(x: float) -> Tuple[float, float]:
    """Hinge loss max(0, -x) with a quadratic blend on [-1, 0].

    Returns:
        Tuple (phi(x), phi'(x)).
    """
    if x >= 0.0:
        return 0.0, 0.0
    if x > -1.0:
        return 0.5 * x * x, x
    return -0.5 - x, -1.0


def exponentially_smoothed_hinge_loss(x: float) -> Tuple[float, float]:
    """Smooth hinge loss -x * exp(1 / x) for x < 0, zero otherwise.

    Returns:
        Tuple (phi(x), phi'(x)).
    """
    if x >= 0.0:
        return 0.0, 0.0
    exp_term = np.exp(1.0 / x)
    return -x * exp_term, exp_term * (1.0 / x - 1.0)


class MinimumDistancePenaltyFunction(enum.Enum):
    QUADRATICALLY_SMOOTHED_HINGE = "quadratically_smoothed_hinge"
    EXPONENTIALLY_SMOOTHED_HINGE = "exponentially_smoothed_hinge"

    def __call__(self, x: float) -> Tuple[float, float]:
        return _PENALTY_FUNCTIONS[self](x)


_PENALTY_FUNCTIONS = {
    MinimumDistancePenaltyFunction.QUADRATICALLY_SMOOTHED_HINGE: quadratically_smoothed_hinge_loss,
    MinimumDistancePenaltyFunction.EXPONENTIALLY_SMOOTHED_HINGE: exponentially_smoothed_hinge_loss,
}


class MinimumDistanceConstraint(KinematicConstraint):
    """Keep every pair of geometries at least `minimum_distance` apart.

    The value is zero whenever all pairs are beyond the influence distance
    minimum_distance + influence_distance_offset, and exceeds the upper
    bound 1 as soon as one pair is closer than minimum_distance.
    """

    def __init__(
        self,
        plant: pin.Model,
        minimum_distance: float,
        plant_context: Configuration,
        distance_query: DistanceQuery,
        penalty_function: Union[
            MinimumDistancePenaltyFunction, PenaltyCallable
        ] = MinimumDistancePenaltyFunction.QUADRATICALLY_SMOOTHED_HINGE,
        influence_distance_offset: float = consts.DEFAULT_INFLUENCE_DISTANCE_OFFSET,
    ):
        """Initialize minimum distance constraint.

        Args:
            plant: Pinocchio model.
            minimum_distance: Smallest allowed signed distance between any pair.
            plant_context: Evaluation context of the plant.
            distance_query: Signed distance queries over the plant geometries.
            penalty_function: A `MinimumDistancePenaltyFunction` or a callable
                returning (phi(x), phi'(x)) with phi(x) = 0 for x >= 0 and
                phi(-1) > 0.
            influence_distance_offset: Positive, finite distance beyond
                minimum_distance at which pairs start to contribute.
        """
        name = self.__class__.__name__
        if not np.isfinite(minimum_distance):
            raise ConstraintDefinitionError(
                f"{name} minimum_distance should be finite but got {minimum_distance}"
            )
        if not np.isfinite(influence_distance_offset) or influence_distance_offset <= 0.0:
            raise ConstraintDefinitionError(
                f"{name} influence_distance_offset should be positive and finite but got "
                f"{influence_distance_offset}"
            )
        if not callable(penalty_function):
            raise ConstraintDefinitionError(f"{name} penalty_function should be callable")
        penalty_at_minimum, _ = penalty_function(-1.0)
        if not penalty_at_minimum > 0.0:
            raise ConstraintDefinitionError(
                f"{name} penalty_function(-1) should be positive but got {penalty_at_minimum}"
            )
        super().__init__(plant, plant_context, 1, [0.0], [1.0])
        self.minimum_distance = float(minimum_distance)
        self.influence_distance = float(minimum_distance + influence_distance_offset)
        self.distance_query = distance_query
        self.penalty_function = penalty_function
        self._penalty_scale = 1.0 / penalty_at_minimum

    def _evaluate(self, configuration, x, compute_gradient):
        pairs = self.distance_query.compute_signed_distance_pairs(
            configuration, max_distance=self.influence_distance
        )
        offset = self.influence_distance - self.minimum_distance
        value = 0.0
        gradient = np.zeros(self.num_vars)
        for pair in pairs:
            scaled = (pair.distance - self.influence_distance) / offset
            penalty, penalty_derivative = self.penalty_function(scaled)
            value += self._penalty_scale * penalty
            if compute_gradient and penalty_derivative != 0.0:
                gradient += (
                    self._penalty_scale
                    * penalty_derivative
                    / offset
                    * distance_jacobian(configuration, pair)
                )
        if not compute_gradient:
            return np.array([value]), None
        return np.array([value]), gradient[np.newaxis, :]

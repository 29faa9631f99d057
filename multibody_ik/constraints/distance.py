"""Distance constraints between geometries and between points."""

from typing import Tuple

import numpy as np
import numpy.typing as npt
import pinocchio as pin

from .. import constants as consts
from ..collision import DistanceQuery, distance_jacobian
from ..configuration import Configuration
from ..exceptions import ConstraintDefinitionError
from .kinematic_constraint import KinematicConstraint
from .kinematics import check_vector


def _check_distance_bounds(owner: str, lower: float, upper: float, nonnegative: bool) -> None:
    if lower > upper or (nonnegative and lower < 0.0):
        minimum = "0 <= " if nonnegative else ""
        raise ConstraintDefinitionError(
            f"{owner} requires {minimum}distance_lower <= distance_upper, got [{lower}, {upper}]"
        )


class DistanceConstraint(KinematicConstraint):
    """Bound the signed distance between one pair of geometries.

        distance_lower <= d(geometry_pair) <= distance_upper
    """

    def __init__(
        self,
        plant: pin.Model,
        geometry_pair: Tuple[str, str],
        plant_context: Configuration,
        distance_query: DistanceQuery,
        distance_lower: float,
        distance_upper: float,
    ):
        """Initialize distance constraint.

        Args:
            plant: Pinocchio model.
            geometry_pair: Names of the two geometries.
            plant_context: Evaluation context of the plant.
            distance_query: Signed distance queries over the plant geometries.
            distance_lower: Lower bound on the signed distance.
            distance_upper: Upper bound on the signed distance.
        """
        _check_distance_bounds(self.__class__.__name__, distance_lower, distance_upper, False)
        super().__init__(plant, plant_context, 1, [distance_lower], [distance_upper])
        self.geometry_pair = tuple(geometry_pair)
        self.distance_query = distance_query
        distance_query.check_geometry_pair(self.geometry_pair)

    def _evaluate(self, configuration, x, compute_gradient):
        pair = self.distance_query.compute_signed_distance_pair(configuration, self.geometry_pair)
        if not compute_gradient:
            return np.array([pair.distance]), None
        return np.array([pair.distance]), distance_jacobian(configuration, pair)[np.newaxis, :]


class PointToPointDistanceConstraint(KinematicConstraint):
    """Bound the distance between a point P1 fixed in frame B1 and a point P2 fixed in frame B2.

        distance_lower <= |p_WP1 - p_WP2| <= distance_upper

    The gradient is zero when the two points coincide.
    """

    def __init__(
        self,
        plant: pin.Model,
        frame1: str,
        p_B1P1: npt.ArrayLike,
        frame2: str,
        p_B2P2: npt.ArrayLike,
        distance_lower: float,
        distance_upper: float,
        plant_context: Configuration,
    ):
        """Initialize point to point distance constraint.

        Args:
            plant: Pinocchio model.
            frame1: Name of frame B1.
            p_B1P1: Position of P1 in B1.
            frame2: Name of frame B2.
            p_B2P2: Position of P2 in B2.
            distance_lower: Non-negative lower bound.
            distance_upper: Upper bound, at least distance_lower.
            plant_context: Evaluation context of the plant.
        """
        name = self.__class__.__name__
        _check_distance_bounds(name, distance_lower, distance_upper, True)
        super().__init__(plant, plant_context, 1, [distance_lower], [distance_upper])
        self.context.frame_id(frame1)
        self.context.frame_id(frame2)
        self.frame1 = frame1
        self.frame2 = frame2
        self.p_B1P1 = check_vector(p_B1P1, 3, "p_B1P1", name, ConstraintDefinitionError)
        self.p_B2P2 = check_vector(p_B2P2, 3, "p_B2P2", name, ConstraintDefinitionError)

    def _evaluate(self, configuration, x, compute_gradient):
        if compute_gradient:
            p_WP1, J1 = configuration.get_point_jacobian(self.frame1, self.p_B1P1)
            p_WP2, J2 = configuration.get_point_jacobian(self.frame2, self.p_B2P2)
        else:
            p_WP1 = configuration.get_transform_frame_to_world(self.frame1) @ self.p_B1P1
            p_WP2 = configuration.get_transform_frame_to_world(self.frame2) @ self.p_B2P2
        delta = p_WP1 - p_WP2
        distance = np.linalg.norm(delta)
        if not compute_gradient:
            return np.array([distance]), None
        if distance < consts.DEGENERATE_NORM:
            return np.array([distance]), np.zeros((1, self.num_vars))
        return np.array([distance]), (delta / distance @ (J1 - J2))[np.newaxis, :]

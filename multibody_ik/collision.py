"""Signed distance queries between collision geometries.

Distance-based constraints only need, for every relevant pair of
geometries, the signed distance, the witness points and the contact normal
at the current configuration. `DistanceQuery` is the interface they
consume. `GeometryDistanceQuery` implements it with a pinocchio
`GeometryModel`; other backends only need to implement the two abstract
methods.
"""

import abc
import logging
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import pinocchio as pin

from .configuration import Configuration
from .exceptions import InvalidGeometryPair

logger = logging.getLogger(__name__)

GeometryPair = Tuple[str, str]


class SignedDistancePair(NamedTuple):
    """Signed distance between two geometries A and B.

    Attributes:
        geometry_a: Name of geometry A.
        geometry_b: Name of geometry B.
        distance: Signed distance, negative when the geometries overlap.
        p_WCa: Witness point on A, in world coordinates.
        p_WCb: Witness point on B, in world coordinates.
        nhat_BA_W: Unit normal pointing from B to A, in world coordinates.
        joint_a: Index of the joint A moves with.
        joint_b: Index of the joint B moves with.
    """

    geometry_a: str
    geometry_b: str
    distance: float
    p_WCa: np.ndarray
    p_WCb: np.ndarray
    nhat_BA_W: np.ndarray
    joint_a: int
    joint_b: int


def distance_jacobian(configuration: Configuration, pair: SignedDistancePair) -> np.ndarray:
    """Gradient of a pair's signed distance with respect to q, shape (nq,).

    The witness points are treated as fixed on their bodies, so
    dd/dq = nhat_BA^T (J_Ca - J_Cb).
    """
    J_Ca = configuration.get_world_point_jacobian(pair.joint_a, pair.p_WCa)
    J_Cb = configuration.get_world_point_jacobian(pair.joint_b, pair.p_WCb)
    return pair.nhat_BA_W @ (J_Ca - J_Cb)


class DistanceQuery(abc.ABC):
    """Abstract interface for signed distance queries.

    Queries read the kinematics cached in the configuration; callers are
    responsible for updating it to the configuration of interest first.
    """

    @abc.abstractmethod
    def compute_signed_distance_pairs(
        self,
        configuration: Configuration,
        max_distance: float = np.inf,
    ) -> List[SignedDistancePair]:
        """Signed distance of every registered pair closer than max_distance."""
        raise NotImplementedError

    @abc.abstractmethod
    def compute_signed_distance_pair(
        self,
        configuration: Configuration,
        geometry_pair: GeometryPair,
    ) -> SignedDistancePair:
        """Signed distance of one pair of geometries.

        Raises:
            InvalidGeometryPair: If the pair is not registered.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def check_geometry_pair(self, geometry_pair: GeometryPair) -> None:
        """Check that a pair of geometries is registered for distance queries.

        Raises:
            InvalidGeometryPair: If the pair is not registered.
        """
        raise NotImplementedError


class GeometryDistanceQuery(DistanceQuery):
    """Distance queries over the collision pairs of a pinocchio GeometryModel."""

    def __init__(self, geometry_model: pin.GeometryModel):
        self.geometry_model = geometry_model
        self.geometry_data = geometry_model.createData()

    @classmethod
    def from_urdf(
        cls,
        model: pin.Model,
        urdf_path: str,
        package_dirs: Optional[Sequence[str]] = None,
        srdf_path: Optional[str] = None,
    ) -> "GeometryDistanceQuery":
        """Load the collision geometries of a URDF and register every pair.

        Args:
            model: Model built from the same URDF.
            urdf_path: Path to URDF file.
            package_dirs: Directories to resolve mesh paths against.
            srdf_path: Optional SRDF whose disabled collision pairs are removed.

        Returns:
            GeometryDistanceQuery instance.
        """
        if package_dirs is None:
            geometry_model = pin.buildGeomFromUrdf(model, urdf_path, pin.GeometryType.COLLISION)
        else:
            geometry_model = pin.buildGeomFromUrdf(
                model, urdf_path, pin.GeometryType.COLLISION, package_dirs=list(package_dirs)
            )
        geometry_model.addAllCollisionPairs()
        if srdf_path is not None:
            pin.removeCollisionPairs(model, geometry_model, srdf_path)
        logger.debug(
            f"Loaded {geometry_model.ngeoms} collision geometries and "
            f"{len(geometry_model.collisionPairs)} collision pairs"
        )
        return cls(geometry_model)

    def compute_signed_distance_pairs(self, configuration, max_distance=np.inf):
        self._update_placements(configuration)
        pairs = []
        for index in range(len(self.geometry_model.collisionPairs)):
            pair = self._distance(index)
            if pair.distance < max_distance:
                pairs.append(pair)
        return pairs

    def compute_signed_distance_pair(self, configuration, geometry_pair):
        index = self._pair_index(geometry_pair)
        self._update_placements(configuration)
        return self._distance(index)

    def check_geometry_pair(self, geometry_pair):
        self._pair_index(geometry_pair)

    def _update_placements(self, configuration: Configuration) -> None:
        pin.updateGeometryPlacements(
            configuration.model,
            configuration.data,
            self.geometry_model,
            self.geometry_data,
        )

    def _pair_index(self, geometry_pair: GeometryPair) -> int:
        name_a, name_b = geometry_pair
        for name in (name_a, name_b):
            if not self.geometry_model.existGeometryName(name):
                raise InvalidGeometryPair(f"Geometry '{name}' does not exist")
        collision_pair = pin.CollisionPair(
            self.geometry_model.getGeometryId(name_a),
            self.geometry_model.getGeometryId(name_b),
        )
        index = self.geometry_model.findCollisionPair(collision_pair)
        if index >= len(self.geometry_model.collisionPairs):
            raise InvalidGeometryPair(
                f"Geometries '{name_a}' and '{name_b}' are not a registered collision pair"
            )
        return index

    def _distance(self, index: int) -> SignedDistancePair:
        collision_pair = self.geometry_model.collisionPairs[index]
        result = pin.computeDistance(self.geometry_model, self.geometry_data, index)
        object_a = self.geometry_model.geometryObjects[collision_pair.first]
        object_b = self.geometry_model.geometryObjects[collision_pair.second]
        # The backend normal points from the first geometry to the second.
        return SignedDistancePair(
            geometry_a=object_a.name,
            geometry_b=object_b.name,
            distance=float(result.min_distance),
            p_WCa=np.array(result.getNearestPoint1()),
            p_WCb=np.array(result.getNearestPoint2()),
            nhat_BA_W=-np.array(result.normal),
            joint_a=int(object_a.parentJoint),
            joint_b=int(object_b.parentJoint),
        )

"""SE(3): Special Euclidean group for rigid transforms in 3D."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np
import numpy.typing as npt
import pinocchio as pin

from .so3 import SO3


@dataclass(frozen=True)
class SE3:
    """Special Euclidean group for proper rigid transforms in 3D.

    X_AB maps coordinates in frame B to coordinates in frame A:
    p_AQ = X_AB @ p_BQ.
    """

    rotation: SO3
    translation: np.ndarray

    def __repr__(self) -> str:
        rot = np.round(self.rotation.quat, 5)
        trans = np.round(self.translation, 5)
        return f"{self.__class__.__name__}(quat={rot}, xyz={trans})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SE3):
            return NotImplemented
        return self.rotation == other.rotation and np.allclose(
            self.translation, other.translation
        )

    def __matmul__(self, other: Union[SE3, np.ndarray]) -> Union[SE3, np.ndarray]:
        if isinstance(other, np.ndarray):
            return self.apply(other)
        return self.multiply(other)

    def copy(self) -> SE3:
        return SE3(rotation=self.rotation.copy(), translation=self.translation.copy())

    @classmethod
    def identity(cls) -> SE3:
        return SE3(rotation=SO3.identity(), translation=np.zeros(3))

    @classmethod
    def from_rotation_and_translation(
        cls,
        rotation: SO3,
        translation: npt.ArrayLike,
    ) -> SE3:
        """Create SE3 from rotation and translation."""
        translation = np.array(translation, dtype=np.float64)
        assert translation.shape == (3,)
        return SE3(rotation=rotation, translation=translation)

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> SE3:
        """Create SE3 from 4x4 homogeneous matrix."""
        assert matrix.shape == (4, 4)
        rotation = SO3.from_matrix(matrix[:3, :3])
        return SE3(rotation=rotation, translation=matrix[:3, 3].copy())

    @classmethod
    def from_pinocchio_se3(cls, placement: pin.SE3) -> SE3:
        """Create SE3 from Pinocchio SE3 object."""
        rotation = SO3.from_matrix(placement.rotation)
        return SE3(rotation=rotation, translation=placement.translation.copy())

    @classmethod
    def from_translation(cls, translation: npt.ArrayLike) -> SE3:
        """Create SE3 with only translation."""
        return SE3.from_rotation_and_translation(
            rotation=SO3.identity(), translation=translation
        )

    def as_matrix(self) -> np.ndarray:
        """Convert to 4x4 homogeneous transformation matrix."""
        matrix = np.eye(4)
        matrix[:3, :3] = self.rotation.as_matrix()
        matrix[:3, 3] = self.translation
        return matrix

    def inverse(self) -> SE3:
        """Compute inverse transformation."""
        rotation_inv = self.rotation.inverse()
        translation_inv = -(rotation_inv.as_matrix() @ self.translation)
        return SE3(rotation=rotation_inv, translation=translation_inv)

    def apply(self, target: np.ndarray) -> np.ndarray:
        """Apply transformation to a 3D point."""
        assert target.shape == (3,)
        return self.rotation.apply(target) + self.translation

    def multiply(self, other: SE3) -> SE3:
        """Compose two transformations."""
        rotation = self.rotation.multiply(other.rotation)
        translation = self.rotation.apply(other.translation) + self.translation
        return SE3(rotation=rotation, translation=translation)

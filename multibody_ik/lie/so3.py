"""SO(3): Special Orthogonal group for 3D rotations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np
import numpy.typing as npt
import pinocchio as pin

from ..constants import get_epsilon

_IDENTITY_QUAT = np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)  # [x, y, z, w]


@dataclass(frozen=True)
class SO3:
    """Special orthogonal group for 3D rotations.

    Internal parameterization is a unit quaternion [x, y, z, w], the same
    ordering pinocchio uses for free-flyer configurations.
    Tangent parameterization is (omega_x, omega_y, omega_z).
    """

    quat: np.ndarray  # [x, y, z, w]

    def __repr__(self) -> str:
        quat = np.round(self.quat, 5)
        return f"{self.__class__.__name__}(quat={quat})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SO3):
            return NotImplemented
        # q and -q describe the same rotation.
        return np.allclose(self.quat, other.quat) or np.allclose(self.quat, -other.quat)

    def __matmul__(self, other: Union[SO3, np.ndarray]) -> Union[SO3, np.ndarray]:
        if isinstance(other, np.ndarray):
            return self.apply(other)
        return self.multiply(other)

    def copy(self) -> SO3:
        return SO3(quat=self.quat.copy())

    @classmethod
    def identity(cls) -> SO3:
        return SO3(quat=_IDENTITY_QUAT.copy())

    @classmethod
    def from_quaternion(cls, quat: npt.ArrayLike) -> SO3:
        """Create SO3 from a (not necessarily unit) quaternion [x, y, z, w]."""
        quat = np.asarray(quat, dtype=np.float64)
        assert quat.shape == (4,)
        norm = np.linalg.norm(quat)
        if norm < get_epsilon(quat.dtype):
            raise ValueError("Cannot build a rotation from a zero quaternion")
        return SO3(quat=quat / norm)

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> SO3:
        """Create SO3 from rotation matrix.

        Args:
            matrix: 3x3 rotation matrix.

        Returns:
            SO3 instance.
        """
        assert matrix.shape == (3, 3)
        quat = pin.Quaternion(np.asarray(matrix, dtype=np.float64)).coeffs()
        return SO3(quat=np.array(quat))

    @classmethod
    def from_rpy(cls, roll: float, pitch: float, yaw: float) -> SO3:
        """Create SO3 from roll-pitch-yaw angles.

        Args:
            roll: Roll angle in radians.
            pitch: Pitch angle in radians.
            yaw: Yaw angle in radians.

        Returns:
            SO3 instance.
        """
        return SO3.from_matrix(pin.rpy.rpyToMatrix(roll, pitch, yaw))

    @classmethod
    def from_axis_angle(cls, axis: npt.ArrayLike, angle: float) -> SO3:
        """Rotation of `angle` radians about `axis` (normalized internally)."""
        axis = np.asarray(axis, dtype=np.float64)
        return SO3.exp(angle * axis / np.linalg.norm(axis))

    def as_matrix(self) -> np.ndarray:
        """Convert to 3x3 rotation matrix."""
        x, y, z, w = self.quat
        return pin.Quaternion(w, x, y, z).toRotationMatrix()

    @classmethod
    def exp(cls, tangent: np.ndarray) -> SO3:
        """Exponential map from tangent space to SO(3).

        Args:
            tangent: 3D rotation vector.

        Returns:
            SO3 instance.
        """
        assert tangent.shape == (3,)
        theta = np.linalg.norm(tangent)

        if theta < get_epsilon(tangent.dtype):
            return SO3.identity()

        axis = tangent / theta
        quat = np.zeros(4)
        quat[:3] = np.sin(theta / 2) * axis
        quat[3] = np.cos(theta / 2)

        return SO3(quat=quat)

    def log(self) -> np.ndarray:
        """Logarithm map from SO(3) to tangent space.

        Returns:
            3D rotation vector (axis times angle).
        """
        return pin.log3(self.as_matrix())

    def angle(self) -> float:
        """Rotation angle in [0, pi]."""
        return float(np.linalg.norm(self.log()))

    def inverse(self) -> SO3:
        """Compute inverse rotation."""
        # For quaternion [x, y, z, w], inverse is [-x, -y, -z, w]
        quat_inv = self.quat.copy()
        quat_inv[:3] = -quat_inv[:3]
        return SO3(quat=quat_inv)

    def apply(self, target: np.ndarray) -> np.ndarray:
        """Rotate a 3D point."""
        assert target.shape == (3,)
        return self.as_matrix() @ target

    def multiply(self, other: SO3) -> SO3:
        """Compose two rotations."""
        q1 = pin.Quaternion(self.quat[3], self.quat[0], self.quat[1], self.quat[2])
        q2 = pin.Quaternion(other.quat[3], other.quat[0], other.quat[1], other.quat[2])
        return SO3(quat=np.array((q1 * q2).coeffs()))

"""Configuration space of a robot model.

The Configuration class is the evaluation context of the IK layer. It
encapsulates a Pinocchio model and data, caches the kinematics of the last
evaluated configuration and offers easy access to frame transforms and
Jacobians with respect to the generalized positions q.

A Configuration is mutated by every evaluation. Constraints and costs enter
it through `evaluation()`, which grants exclusive, non-reentrant access for
the duration of one evaluation call.
"""

import contextlib
import logging
import threading
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt
import pinocchio as pin

from . import constants as consts
from . import exceptions
from .lie import SE3, SO3, skew

logger = logging.getLogger(__name__)

_QUATERNION_JOINTS = {
    "JointModelFreeFlyer": 3,
    "JointModelSpherical": 0,
}
_UNIT_COMPLEX_JOINTS = {
    "JointModelRUBX": 0,
    "JointModelRUBY": 0,
    "JointModelRUBZ": 0,
    "JointModelRevoluteUnboundedUnaligned": 0,
    "JointModelPlanar": 2,
}


def quaternion_blocks(model: pin.Model) -> List[np.ndarray]:
    """Indices into q of every quaternion block of the model.

    Args:
        model: Pinocchio model.

    Returns:
        One array of 4 configuration indices per free-flyer or spherical joint.
    """
    blocks = []
    for joint in model.joints:
        offset = _QUATERNION_JOINTS.get(joint.shortname())
        if offset is not None:
            start = joint.idx_q + offset
            blocks.append(np.arange(start, start + 4))
    return blocks


def unit_norm_blocks(model: pin.Model) -> List[np.ndarray]:
    """Indices into q of every block pinocchio expects to have unit norm.

    This covers quaternion blocks and the (cos, sin) pairs of unbounded
    revolute and planar joints.
    """
    blocks = quaternion_blocks(model)
    for joint in model.joints:
        offset = _UNIT_COMPLEX_JOINTS.get(joint.shortname())
        if offset is not None:
            start = joint.idx_q + offset
            blocks.append(np.arange(start, start + 2))
    return blocks


class Configuration:
    """Encapsulates a Pinocchio model and data for convenient access to kinematic quantities.

    Key functionalities include:
    * Running forward kinematics, optionally with joint Jacobians, and caching
      the result for the last evaluated configuration.
    * Computing frame and point Jacobians with respect to q (not v).
    * Retrieving frame transforms relative to the world frame.
    * Center-of-mass of a subset of bodies and its Jacobian.
    * Checking configuration limits.

    Configuration vectors are evaluated with their unit-norm blocks
    normalized, so quaternion coordinates only need to be non-zero.
    """

    def __init__(
        self,
        model: pin.Model,
        q: Optional[np.ndarray] = None,
    ):
        """Constructor.

        Args:
            model: Pinocchio model.
            q: Configuration to initialize from. If None, the configuration is
                initialized to the neutral configuration.
        """
        self.model = model
        self.data = model.createData()
        self._lock = threading.Lock()
        self._blocks = unit_norm_blocks(model)
        self._q: Optional[np.ndarray] = None
        self._has_jacobians = False
        self._tangent_map: Optional[np.ndarray] = None

        if q is None:
            q = pin.neutral(model)

        self.update(q=q)

    @classmethod
    def from_urdf(
        cls,
        urdf_path: str,
        q: Optional[np.ndarray] = None,
        floating_base: bool = False,
    ) -> "Configuration":
        """Create a Configuration from a URDF file.

        Args:
            urdf_path: Path to URDF file.
            q: Optional initial configuration.
            floating_base: If True, attach the root link with a free-flyer joint.

        Returns:
            Configuration instance.
        """
        if floating_base:
            model = pin.buildModelFromUrdf(urdf_path, pin.JointModelFreeFlyer())
        else:
            model = pin.buildModelFromUrdf(urdf_path)
        return cls(model, q)

    def update(
        self,
        q: Optional[npt.ArrayLike] = None,
        compute_jacobians: bool = False,
    ) -> None:
        """Run forward kinematics unless the cached result already covers q.

        Args:
            q: Optional configuration vector to override the cached one with.
            compute_jacobians: Also compute joint Jacobians.
        """
        if q is None:
            q = self._q
        q = np.array(q, dtype=np.float64)
        if q.shape != (self.model.nq,):
            raise exceptions.InvalidConfiguration(self.model.nq, q.shape)

        if (
            self._q is not None
            and np.array_equal(q, self._q)
            and (self._has_jacobians or not compute_jacobians)
        ):
            return

        q_normalized = self._normalize(q)
        if compute_jacobians:
            pin.computeJointJacobians(self.model, self.data, q_normalized)
            pin.updateFramePlacements(self.model, self.data)
            self._tangent_map = self._compute_tangent_map(q, q_normalized)
        else:
            pin.framesForwardKinematics(self.model, self.data, q_normalized)
            self._tangent_map = None

        self._q = q
        self._has_jacobians = compute_jacobians

    @contextlib.contextmanager
    def evaluation(
        self,
        q: npt.ArrayLike,
        compute_jacobians: bool = False,
    ) -> Iterator["Configuration"]:
        """Exclusive access to this context for one evaluation at q.

        Args:
            q: Configuration to evaluate at.
            compute_jacobians: Also compute joint Jacobians.

        Raises:
            ContextInUseError: If another evaluation currently holds the context.
        """
        if not self._lock.acquire(blocking=False):
            raise exceptions.ContextInUseError()
        try:
            self.update(q, compute_jacobians=compute_jacobians)
            yield self
        finally:
            self._lock.release()

    @property
    def q(self) -> np.ndarray:
        """Get current configuration."""
        return self._q

    @property
    def nq(self) -> int:
        """Configuration space dimension."""
        return self.model.nq

    @property
    def nv(self) -> int:
        """Tangent space dimension."""
        return self.model.nv

    def position_limits(self) -> Tuple[np.ndarray, np.ndarray]:
        """Joint position limits with missing limits reported as +/- inf.

        Unit-norm blocks (quaternions, unbounded revolute joints) are bounded
        by [-1, 1] coordinate-wise.
        """
        lower = np.array(self.model.lowerPositionLimit, dtype=np.float64)
        upper = np.array(self.model.upperPositionLimit, dtype=np.float64)
        lower[lower <= -consts.JOINT_LIMIT_INFINITY] = -np.inf
        upper[upper >= consts.JOINT_LIMIT_INFINITY] = np.inf
        for block in self._blocks:
            lower[block] = -1.0
            upper[block] = 1.0
        return lower, upper

    def check_limits(self, tol: float = consts.DEFAULT_TOLERANCE, safety_break: bool = True) -> None:
        """Check that the current configuration is within bounds.

        Args:
            tol: Tolerance in [rad] or [m].
            safety_break: If True, raise an exception if the current
                configuration is outside limits. If False, log a warning and continue.

        Raises:
            NotWithinConfigurationLimits: If the current configuration is outside
                the joint limits and safety_break is True.
        """
        q_min, q_max = self.position_limits()
        for i in range(self.model.nq):
            if self._q[i] < q_min[i] - tol or self._q[i] > q_max[i] + tol:
                if safety_break:
                    raise exceptions.NotWithinConfigurationLimits(
                        index=i,
                        value=self._q[i],
                        lower=q_min[i],
                        upper=q_max[i],
                    )
                logger.warning(
                    f"Value {self._q[i]:.4f} at index {i} is outside of its limits: "
                    f"[{q_min[i]:.4f}, {q_max[i]:.4f}]"
                )

    def frame_id(self, frame_name: str) -> int:
        """Resolve a frame name.

        Raises:
            InvalidFrame: If the frame does not exist in the model.
        """
        if not self.model.existFrame(frame_name):
            raise exceptions.InvalidFrame(frame_name, self.model)
        return self.model.getFrameId(frame_name)

    def get_transform_frame_to_world(self, frame_name: str) -> SE3:
        """Get the pose of a frame at the current configuration.

        Args:
            frame_name: Name of the frame in the URDF.

        Returns:
            The pose of the frame in the world frame.
        """
        placement = self.data.oMf[self.frame_id(frame_name)]
        return SE3.from_pinocchio_se3(placement)

    def get_frame_rotation(self, frame_name: str) -> np.ndarray:
        """Rotation matrix R_WF of a frame."""
        return self.data.oMf[self.frame_id(frame_name)].rotation.copy()

    def get_frame_jacobian(self, frame_name: str) -> np.ndarray:
        """Compute the Jacobian of a frame with respect to q.

        The Jacobian is expressed in the world-aligned frame at the frame
        origin: [v_WFo; w_WF] = J * qdot.

        Args:
            frame_name: Name of the frame in the URDF.

        Returns:
            Jacobian of the frame (6, nq) - [linear velocity; angular velocity]
        """
        frame_id = self.frame_id(frame_name)
        self._ensure_jacobians()
        J = pin.getFrameJacobian(
            self.model,
            self.data,
            frame_id,
            pin.ReferenceFrame.LOCAL_WORLD_ALIGNED,
        )
        return self._to_configuration_jacobian(J)

    def get_point_jacobian(
        self,
        frame_name: str,
        p_BQ: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Position of a point Q fixed in frame B and its Jacobian.

        Args:
            frame_name: Name of frame B.
            p_BQ: Position of Q in B.

        Returns:
            Tuple (p_WQ, J) with J of shape (3, nq).
        """
        placement = self.data.oMf[self.frame_id(frame_name)]
        p_BoQ_W = placement.rotation @ p_BQ
        J = self.get_frame_jacobian(frame_name)
        return placement.translation + p_BoQ_W, J[:3] - skew(p_BoQ_W) @ J[3:]

    def get_world_point_jacobian(self, joint_id: int, p_WQ: np.ndarray) -> np.ndarray:
        """Jacobian of a point given in world coordinates and rigidly attached to a joint.

        Args:
            joint_id: Index of the joint (body) the point moves with.
            p_WQ: Current position of the point in the world frame.

        Returns:
            Jacobian of shape (3, nq).
        """
        self._ensure_jacobians()
        J = pin.getJointJacobian(
            self.model,
            self.data,
            joint_id,
            pin.ReferenceFrame.LOCAL_WORLD_ALIGNED,
        )
        J = self._to_configuration_jacobian(J)
        p_JoQ_W = p_WQ - self.data.oMi[joint_id].translation
        return J[:3] - skew(p_JoQ_W) @ J[3:]

    def get_center_of_mass(self, joint_ids: Sequence[int]) -> np.ndarray:
        """Center of mass of the bodies supported by the given joints, in world."""
        total_mass, weighted = 0.0, np.zeros(3)
        for joint_id in joint_ids:
            inertia = self.model.inertias[joint_id]
            placement = self.data.oMi[joint_id]
            weighted += inertia.mass * (placement.rotation @ inertia.lever + placement.translation)
            total_mass += inertia.mass
        return weighted / total_mass

    def get_center_of_mass_jacobian(
        self,
        joint_ids: Sequence[int],
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Center of mass of the given bodies and its Jacobian of shape (3, nq)."""
        total_mass = 0.0
        weighted = np.zeros(3)
        J = np.zeros((3, self.model.nq))
        for joint_id in joint_ids:
            inertia = self.model.inertias[joint_id]
            placement = self.data.oMi[joint_id]
            p_WC = placement.rotation @ inertia.lever + placement.translation
            weighted += inertia.mass * p_WC
            J += inertia.mass * self.get_world_point_jacobian(joint_id, p_WC)
            total_mass += inertia.mass
        return weighted / total_mass, J / total_mass

    def tangent_to_configuration_map(self) -> np.ndarray:
        """Matrix N of shape (nv, nq) such that v = N * qdot at the current q."""
        self._ensure_jacobians()
        if self._tangent_map is None:
            return np.eye(self.model.nv, self.model.nq)
        return self._tangent_map

    def _ensure_jacobians(self) -> None:
        if not self._has_jacobians:
            self.update(self._q, compute_jacobians=True)

    def _to_configuration_jacobian(self, J: np.ndarray) -> np.ndarray:
        if self._tangent_map is None:
            return J
        return J @ self._tangent_map

    def _normalize(self, q: np.ndarray) -> np.ndarray:
        q_normalized = q.copy()
        for block in self._blocks:
            norm = np.linalg.norm(q[block])
            if norm > consts.DEGENERATE_NORM:
                q_normalized[block] = q[block] / norm
        return q_normalized

    def _compute_tangent_map(
        self,
        q: np.ndarray,
        q_normalized: np.ndarray,
    ) -> Optional[np.ndarray]:
        if not self._blocks and self.model.nq == self.model.nv:
            return None
        # The pseudo-inverse of dq/dv maps coordinate rates back to the
        # tangent space and drops the radial direction of unit-norm blocks.
        tangent_map = np.linalg.pinv(integration_jacobian(self.model, q_normalized))
        for block in self._blocks:
            norm = np.linalg.norm(q[block])
            if norm > consts.DEGENERATE_NORM:
                tangent_map[:, block] /= norm
        return tangent_map


def _quaternion_rate_map(quat: np.ndarray) -> np.ndarray:
    # d[x, y, z, w] / d(omega) for quat * exp(omega / 2), omega in the local frame.
    xyz, w = quat[:3], quat[3]
    return 0.5 * np.vstack([w * np.eye(3) + skew(xyz), -xyz[np.newaxis, :]])


def _unit_complex_rate_map(cos_sin: np.ndarray) -> np.ndarray:
    return np.array([[-cos_sin[1]], [cos_sin[0]]])


def integration_jacobian(model: pin.Model, q: npt.ArrayLike) -> np.ndarray:
    """Jacobian of pinocchio's q (+) v with respect to v, at v = 0.

    Args:
        model: Pinocchio model.
        q: Configuration with normalized unit-norm blocks.

    Returns:
        Matrix of shape (nq, nv).
    """
    q = np.asarray(q, dtype=np.float64)
    dq_dv = np.zeros((model.nq, model.nv))
    for joint_id in range(1, model.njoints):
        joint = model.joints[joint_id]
        iq, iv = joint.idx_q, joint.idx_v
        name = joint.shortname()
        if name == "JointModelFreeFlyer":
            quat = q[iq + 3 : iq + 7]
            dq_dv[iq : iq + 3, iv : iv + 3] = SO3.from_quaternion(quat).as_matrix()
            dq_dv[iq + 3 : iq + 7, iv + 3 : iv + 6] = _quaternion_rate_map(quat)
        elif name == "JointModelSpherical":
            dq_dv[iq : iq + 4, iv : iv + 3] = _quaternion_rate_map(q[iq : iq + 4])
        elif name == "JointModelPlanar":
            c, s = q[iq + 2 : iq + 4]
            dq_dv[iq : iq + 2, iv : iv + 2] = np.array([[c, -s], [s, c]])
            dq_dv[iq + 2 : iq + 4, iv + 2 : iv + 3] = _unit_complex_rate_map(q[iq + 2 : iq + 4])
        elif name in _UNIT_COMPLEX_JOINTS:
            dq_dv[iq : iq + 2, iv : iv + 1] = _unit_complex_rate_map(q[iq : iq + 2])
        elif joint.nq == joint.nv:
            dq_dv[iq : iq + joint.nq, iv : iv + joint.nv] = np.eye(joint.nq)
        else:
            raise exceptions.UnsupportedJointError(
                model.names[joint_id],
                name,
                ["JointModelFreeFlyer", "JointModelSpherical", "JointModelPlanar", *_UNIT_COMPLEX_JOINTS],
            )
    return dq_dv

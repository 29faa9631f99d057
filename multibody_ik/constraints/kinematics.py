"""Kinematic quantities shared by constraints and costs.

All Jacobians are taken with respect to the generalized positions q and
expressed in the world frame unless stated otherwise.
"""

from typing import List, Optional, Sequence, Tuple, Type

import numpy as np
import numpy.typing as npt
import pinocchio as pin

from ..configuration import Configuration
from ..exceptions import ContextMismatchError, IKError, InvalidModelInstance
from ..lie import SE3, SO3, skew


def check_plant_context(owner: str, plant: pin.Model, plant_context: Configuration) -> Configuration:
    """Ensure the context was created for the plant.

    Raises:
        ContextMismatchError: If the context wraps a different model.
    """
    if not isinstance(plant_context, Configuration) or plant_context.model is not plant:
        raise ContextMismatchError(owner)
    return plant_context


def check_vector(
    value: npt.ArrayLike,
    size: int,
    label: str,
    owner: str,
    error: Type[IKError],
) -> np.ndarray:
    """Convert value to a float vector of the given size or raise `error`."""
    vector = np.asarray(value, dtype=np.float64).reshape(-1)
    if vector.shape != (size,):
        raise error(f"{owner} {label} should have shape ({size},) but got {np.shape(value)}")
    return vector


def frame_orientation(
    configuration: Configuration,
    frame_bar: str,
    R_BarF: SO3,
    compute_gradient: bool,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """Orientation of F = Bar * R_BarF in world and the Jacobian of its angular velocity.

    Returns:
        Tuple (R_WF, J_omega) with J_omega of shape (3, nq), or None when no
        gradient is requested.
    """
    R_WF = configuration.get_frame_rotation(frame_bar) @ R_BarF.as_matrix()
    if not compute_gradient:
        return R_WF, None
    return R_WF, configuration.get_frame_jacobian(frame_bar)[3:]


def express_point_in_frame(
    configuration: Configuration,
    frame_abar: str,
    X_AbarA: Optional[SE3],
    p_WQ: np.ndarray,
    J_WQ: Optional[np.ndarray],
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """Express a world point in frame A = Abar * X_AbarA.

    p_AQ = R_WA^T (p_WQ - p_WAo) and, with d = p_WQ - p_WAo,
    dp_AQ/dq = R_WA^T (J_Q - J_Ao + [d]x J_omega_A).

    Args:
        configuration: Configuration holding the current kinematics.
        frame_abar: Name of frame Abar.
        X_AbarA: Pose of A in Abar. Identity if None.
        p_WQ: Position of Q in world.
        J_WQ: Jacobian of p_WQ, or None to skip the gradient.

    Returns:
        Tuple (p_AQ, J) with J of shape (3, nq) or None.
    """
    if X_AbarA is None:
        X_AbarA = SE3.identity()
    placement = configuration.get_transform_frame_to_world(frame_abar)
    X_WA = placement @ X_AbarA
    R_WA = X_WA.rotation.as_matrix()
    d = p_WQ - X_WA.translation
    p_AQ = R_WA.T @ d
    if J_WQ is None:
        return p_AQ, None
    _, J_Ao = configuration.get_point_jacobian(frame_abar, X_AbarA.translation)
    J_omega_A = configuration.get_frame_jacobian(frame_abar)[3:]
    return p_AQ, R_WA.T @ (J_WQ - J_Ao + skew(d) @ J_omega_A)


def relative_position(
    configuration: Configuration,
    frame_abar: str,
    X_AbarA: Optional[SE3],
    frame_b: str,
    p_BQ: np.ndarray,
    compute_gradient: bool,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """Position of a point Q fixed in frame B, measured and expressed in A."""
    if compute_gradient:
        p_WQ, J_WQ = configuration.get_point_jacobian(frame_b, p_BQ)
    else:
        p_WQ = configuration.get_transform_frame_to_world(frame_b) @ p_BQ
        J_WQ = None
    return express_point_in_frame(configuration, frame_abar, X_AbarA, p_WQ, J_WQ)


def relative_rotation(
    configuration: Configuration,
    frame_abar: str,
    R_AbarA: SO3,
    frame_bbar: str,
    R_BbarB: SO3,
    compute_gradient: bool,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """Rotation R_AB between A = Abar * R_AbarA and B = Bbar * R_BbarB.

    Returns:
        Tuple (R_AB, J_delta). J_delta maps qdot to the angular velocity of
        B relative to A expressed in B, so that dR_AB = R_AB [J_delta qdot]x.
        It is None when no gradient is requested.
    """
    R_WA, J_omega_A = frame_orientation(configuration, frame_abar, R_AbarA, compute_gradient)
    R_WB, J_omega_B = frame_orientation(configuration, frame_bbar, R_BbarB, compute_gradient)
    R_AB = R_WA.T @ R_WB
    if not compute_gradient:
        return R_AB, None
    return R_AB, R_WB.T @ (J_omega_B - J_omega_A)


def model_instance_joints(
    plant: pin.Model,
    model_instances: Optional[Sequence[str]],
) -> List[int]:
    """Joint (body) indices of the model instances named by their root joints.

    Args:
        plant: Pinocchio model.
        model_instances: Root joint names. Each instance is the subtree of
            its root joint. If None, every body of the model is selected.

    Returns:
        Sorted joint indices.

    Raises:
        InvalidModelInstance: If the list is empty, names an unknown joint,
            contains duplicates, overlaps, or selects bodies with zero
            total mass.
    """
    if model_instances is None:
        joint_ids = list(range(1, plant.njoints))
    else:
        model_instances = list(model_instances)
        if not model_instances:
            raise InvalidModelInstance("Model instance list is empty", plant)
        if len(set(model_instances)) != len(model_instances):
            raise InvalidModelInstance(f"Duplicated model instances in {model_instances}", plant)
        joint_ids = []
        for name in model_instances:
            if not plant.existJointName(name) or plant.getJointId(name) == 0:
                raise InvalidModelInstance(f"Unknown model instance '{name}'", plant)
            subtree = [int(i) for i in plant.subtrees[plant.getJointId(name)]]
            if set(subtree) & set(joint_ids):
                raise InvalidModelInstance(
                    f"Model instance '{name}' overlaps another instance in {model_instances}",
                    plant,
                )
            joint_ids.extend(subtree)
    joint_ids = sorted(joint_ids)
    if sum(plant.inertias[i].mass for i in joint_ids) <= 0.0:
        raise InvalidModelInstance("Selected bodies have zero total mass", plant)
    return joint_ids

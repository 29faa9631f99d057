"""Exceptions specific to the IK formulation layer."""

from typing import Sequence

import pinocchio as pin


class IKError(Exception):
    """Base class for IK formulation exceptions."""


class InvalidFrame(IKError):
    """Exception raised when a frame name is not found in the robot model."""

    def __init__(self, frame_name: str, model: pin.Model):
        available_frames = [model.frames[i].name for i in range(len(model.frames))]
        message = (
            f"Frame '{frame_name}' does not exist in the model. "
            f"Available frame names: {available_frames}"
        )
        super().__init__(message)


class ContextMismatchError(IKError):
    """Exception raised when a context was built for a different plant."""

    def __init__(self, owner: str):
        super().__init__(
            f"{owner}: plant_context was not created for the given plant. "
            "Build the Configuration from the same pinocchio model."
        )


class ContextInUseError(IKError):
    """Exception raised when two evaluations try to use one context at once."""

    def __init__(self):
        super().__init__(
            "Configuration is already being evaluated. Evaluations against a "
            "context must be sequential; use one Configuration per thread."
        )


class InvalidModelInstance(IKError):
    """Exception raised when a model instance list is malformed."""

    def __init__(self, message: str, model: pin.Model):
        available = [model.names[i] for i in range(1, model.njoints)]
        super().__init__(f"{message}. Available root joints: {available}")


class UnsupportedJointError(IKError):
    """Exception raised when the global IK meets a joint it cannot relax."""

    def __init__(self, joint_name: str, joint_type: str, supported: Sequence[str]):
        super().__init__(
            f"Joint '{joint_name}' of type {joint_type} is not supported. "
            f"Supported joint types: {list(supported)}"
        )


class ConstraintDefinitionError(IKError):
    """Exception raised when a constraint is incorrectly defined."""

    def __init__(self, message: str):
        super().__init__(message)


class CostDefinitionError(IKError):
    """Exception raised when a cost is incorrectly defined."""

    def __init__(self, message: str):
        super().__init__(message)


class ProgramDefinitionError(IKError):
    """Exception raised when a mathematical program is misused."""

    def __init__(self, message: str):
        super().__init__(message)


class InvalidConfiguration(IKError):
    """Exception raised when a configuration vector has the wrong shape."""

    def __init__(self, expected: int, shape: tuple):
        super().__init__(
            f"Expected a configuration vector of shape ({expected},) but got {shape}"
        )


class NotWithinConfigurationLimits(IKError):
    """Exception raised when a configuration violates its limits."""

    def __init__(self, index: int, value: float, lower: float, upper: float):
        message = (
            f"Configuration violates limits at index {index}. "
            f"Value: {value:.4f}, Limits: [{lower:.4f}, {upper:.4f}]"
        )
        super().__init__(message)


class InvalidGeometryPair(IKError):
    """Exception raised when a geometry pair is unknown to a distance query."""

    def __init__(self, message: str):
        super().__init__(message)

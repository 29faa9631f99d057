"""Options of the global inverse kinematics relaxation."""

import enum
from dataclasses import dataclass

from .. import constants as consts
from ..exceptions import ProgramDefinitionError


class RelaxationApproach(enum.Enum):
    """How the upper bounds on the norms of rotation columns and rows are relaxed."""

    # Polyhedral outer approximations of the norm balls.
    LINEAR = "linear"
    # Lorentz cones on the norms.
    SECOND_ORDER_CONE = "second_order_cone"


class IntervalBinning(enum.Enum):
    """Encoding of the interval a binned quantity falls into."""

    # One binary variable per interval.
    LINEAR = "linear"
    # log2(number of intervals) binary variables through a Gray code.
    LOGARITHMIC = "logarithmic"


@dataclass
class GlobalInverseKinematicsOptions:
    """Options of `GlobalInverseKinematics`.

    Attributes:
        num_intervals_per_half_axis: Number of intervals [0, 1] is cut into
            when binning the squared rotation quantities. Larger values give
            tighter relaxations and larger programs.
        approach: Relaxation of the norm upper bounds.
        interval_binning: Encoding of the interval binaries.
        linear_constraint_only: Only add linear constraints, so the program
            is a mixed-integer linear program.
    """

    num_intervals_per_half_axis: int = consts.DEFAULT_NUM_INTERVALS_PER_HALF_AXIS
    approach: RelaxationApproach = RelaxationApproach.SECOND_ORDER_CONE
    interval_binning: IntervalBinning = IntervalBinning.LOGARITHMIC
    linear_constraint_only: bool = False

    def __repr__(self) -> str:
        return (
            "GlobalInverseKinematics.Options("
            f"num_intervals_per_half_axis={self.num_intervals_per_half_axis}, "
            f"approach={self.approach}, "
            f"interval_binning={self.interval_binning}, "
            f"linear_constraint_only={self.linear_constraint_only})"
        )

    def validate(self) -> None:
        """Check the options are consistent.

        Raises:
            ProgramDefinitionError: If num_intervals_per_half_axis is smaller
                than 1, or is not a power of 2 with logarithmic binning.
        """
        n = self.num_intervals_per_half_axis
        if not isinstance(n, int) or isinstance(n, bool) or n < 1:
            raise ProgramDefinitionError(
                f"num_intervals_per_half_axis should be a positive integer but got {n!r}"
            )
        if self.interval_binning is IntervalBinning.LOGARITHMIC and n & (n - 1):
            raise ProgramDefinitionError(
                "num_intervals_per_half_axis should be a power of 2 with logarithmic "
                f"interval binning but got {n}"
            )
        if not isinstance(self.approach, RelaxationApproach):
            raise ProgramDefinitionError(f"Unknown relaxation approach {self.approach!r}")
        if not isinstance(self.interval_binning, IntervalBinning):
            raise ProgramDefinitionError(f"Unknown interval binning {self.interval_binning!r}")

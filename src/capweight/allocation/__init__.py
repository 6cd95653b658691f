"""Target allocation calculation."""

from capweight.allocation.calculator import (
    TargetAllocationCalculator,
    compile_tag_pattern,
    compute_target_allocation,
)

__all__ = [
    "TargetAllocationCalculator",
    "compile_tag_pattern",
    "compute_target_allocation",
]

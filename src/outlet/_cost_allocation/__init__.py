from .cost_allocation import (
    _cost_allocation_core,
    allocate,
    initialize_labels,
    propagate_labels,
)

__all__ = [
    "_cost_allocation_core",
    "allocate",
    "initialize_labels",
    "propagate_labels",
]

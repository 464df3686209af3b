from .breach_single_cell_pits import (
    PitSummary,
    _breach_single_cell_pits,
    apply_breaches,
    breach_single_cell_pits_in_chunk,
    find_single_cell_pits,
)

__all__ = [
    "PitSummary",
    "_breach_single_cell_pits",
    "apply_breaches",
    "breach_single_cell_pits_in_chunk",
    "find_single_cell_pits",
]

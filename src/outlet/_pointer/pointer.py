import numpy as np
from numba import njit, prange  # type: ignore[attr-defined]

from outlet._util.constants import (
    FLOW_DIRECTION_NODATA,
    FLOW_DIRECTION_UNDEFINED,
)
from outlet.codes import PointerScheme


def pointer_codes(scheme: PointerScheme | str) -> np.ndarray:
    """Raw pointer codes of ``scheme`` in neighbor offset order."""
    return PointerScheme(scheme).codes


@njit
def decode_pointer(code: float, pointer_nodata: float, codes: np.ndarray) -> int:
    """
    Decode a raw pointer value into a flow direction.

    Parameters
    ----------
    code : float
        Raw value of the pointer raster cell.
    pointer_nodata : float
        Nodata value of the pointer raster (``NaN`` if it has none).
    codes : np.ndarray
        The eight raw codes of the pointer scheme, in neighbor offset order.

    Returns
    -------
    int
        The neighbor offset index (0-7), FLOW_DIRECTION_NODATA for nodata
        cells, or FLOW_DIRECTION_UNDEFINED for any other value. Unknown codes
        are treated as flow terminating in the cell, not as errors.
    """
    if code == pointer_nodata or np.isnan(code):
        return FLOW_DIRECTION_NODATA
    for i in range(8):
        if code == codes[i]:
            return i
    return FLOW_DIRECTION_UNDEFINED


@njit(parallel=True)
def decode_pointer_grid(
    pointer: np.ndarray, pointer_nodata: float, codes: np.ndarray
) -> np.ndarray:
    """
    Decode every cell of a pointer raster.

    Returns
    -------
    np.ndarray
        int8 array of flow directions with the same shape as ``pointer``.
    """
    rows, cols = pointer.shape
    flow_dirs = np.empty((rows, cols), dtype=np.int8)
    for row in prange(rows):
        for col in range(cols):
            flow_dirs[row, col] = decode_pointer(
                pointer[row, col], pointer_nodata, codes
            )
    return flow_dirs

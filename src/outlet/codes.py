from enum import Enum, IntEnum, unique

import numpy as np

from outlet._util.constants import (
    ESRI_POINTER_CODES,
    FLOW_DIRECTION_EAST,
    FLOW_DIRECTION_NODATA,
    FLOW_DIRECTION_NORTH,
    FLOW_DIRECTION_NORTH_EAST,
    FLOW_DIRECTION_NORTH_WEST,
    FLOW_DIRECTION_SOUTH,
    FLOW_DIRECTION_SOUTH_EAST,
    FLOW_DIRECTION_SOUTH_WEST,
    FLOW_DIRECTION_UNDEFINED,
    FLOW_DIRECTION_WEST,
    ORDINAL_POINTER_CODES,
    WHITEBOX_POINTER_CODES,
)


@unique
class FlowDirection(IntEnum):
    """Decoded D8 flow directions.

    The numeric values are the row index in the neighbor offset array,
    starting from North East (0) and going clockwise, plus negative values
    for cells without a direction.

    | 6 | 7 | 0 |
    | :-: | :-: | :-: |
    | 5 | . | 1 |
    | 4 | 3 | 2 |

    """

    NORTH_EAST = FLOW_DIRECTION_NORTH_EAST
    EAST = FLOW_DIRECTION_EAST
    SOUTH_EAST = FLOW_DIRECTION_SOUTH_EAST
    SOUTH = FLOW_DIRECTION_SOUTH
    SOUTH_WEST = FLOW_DIRECTION_SOUTH_WEST
    WEST = FLOW_DIRECTION_WEST
    NORTH_WEST = FLOW_DIRECTION_NORTH_WEST
    NORTH = FLOW_DIRECTION_NORTH
    UNDEFINED = FLOW_DIRECTION_UNDEFINED
    NODATA = FLOW_DIRECTION_NODATA


@unique
class PointerScheme(str, Enum):
    """Raw value conventions for D8 pointer (back-link) rasters.

    * ``whitebox``: powers of two, 1 = north east, clockwise.
    * ``esri``: powers of two, 1 = east, clockwise.
    * ``ordinal``: 0 = east, counter-clockwise, 8 = undefined, 9 = nodata.
    """

    WHITEBOX = "whitebox"
    ESRI = "esri"
    ORDINAL = "ordinal"

    @property
    def codes(self) -> np.ndarray:
        """Raw codes in :class:`FlowDirection` order."""
        if self is PointerScheme.ESRI:
            return ESRI_POINTER_CODES
        if self is PointerScheme.ORDINAL:
            return ORDINAL_POINTER_CODES
        return WHITEBOX_POINTER_CODES

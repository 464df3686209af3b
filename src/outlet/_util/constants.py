import numpy as np

# constants used in the outlet module
DEFAULT_CHUNK_SIZE = 2048
# a pit in the first buffer row can lower a tile cell, and its
# second-order ring reaches three cells past the tile edge
CHUNK_BUFFER_SIZE = 3
DEFAULT_LABEL_NODATA = -32768.0
# most negative finite float64, never a valid source label
UNRESOLVED_LABEL = np.finfo(np.float64).min

#   6  |   7    |  0
# ------------------
#   5  |   .   |  1
# ------------------
#   4  |   3   |  2
FLOW_DIRECTION_NORTH_EAST = 0
FLOW_DIRECTION_EAST = 1
FLOW_DIRECTION_SOUTH_EAST = 2
FLOW_DIRECTION_SOUTH = 3
FLOW_DIRECTION_SOUTH_WEST = 4
FLOW_DIRECTION_WEST = 5
FLOW_DIRECTION_NORTH_WEST = 6
FLOW_DIRECTION_NORTH = 7
FLOW_DIRECTION_UNDEFINED = -1
FLOW_DIRECTION_NODATA = -2

# numba does not support global constant dictionaries
# so lookups are done by ordering the rows of the array to
# match the flow direction codes
# see https://github.com/numba/numba/issues/6488
NEIGHBOR_OFFSETS = np.array(
    [
        (-1, 1),  # NORTH_EAST
        (0, 1),  # EAST
        (1, 1),  # SOUTH_EAST
        (1, 0),  # SOUTH
        (1, -1),  # SOUTH_WEST
        (0, -1),  # WEST
        (-1, -1),  # NORTH_WEST
        (-1, 0),  # NORTH
    ],
    dtype=np.int64,
)

# cells at king-move distance 2, clockwise from the upper-right corner
SECOND_ORDER_OFFSETS = np.array(
    [
        (-2, 2),
        (-1, 2),
        (0, 2),
        (1, 2),
        (2, 2),
        (2, 1),
        (2, 0),
        (2, -1),
        (2, -2),
        (1, -2),
        (0, -2),
        (-1, -2),
        (-2, -2),
        (-2, -1),
        (-2, 0),
        (-2, 1),
    ],
    dtype=np.int64,
)
# first-order neighbor lowered to connect a pit to each ring cell
BREACH_CELL = np.array(
    [0, 0, 1, 1, 2, 2, 3, 3, 4, 4, 5, 5, 6, 6, 7, 0], dtype=np.int64
)

# raw pointer codes in NEIGHBOR_OFFSETS order
WHITEBOX_POINTER_CODES = np.array([1, 2, 4, 8, 16, 32, 64, 128], dtype=np.float64)
ESRI_POINTER_CODES = np.array([128, 1, 2, 4, 8, 16, 32, 64], dtype=np.float64)
# 0 = east, counter-clockwise, 8 = undefined, 9 = nodata
ORDINAL_POINTER_CODES = np.array([1, 0, 7, 6, 5, 4, 3, 2], dtype=np.float64)
ORDINAL_POINTER_NODATA = 9

PROPAGATION_OK = 0
PROPAGATION_OFF_GRID = 1
PROPAGATION_CYCLE = 2

PIT_NONE = 0
PIT_BREACHED = 1
PIT_UNSOLVED = 2
NO_RING_CELL = -1

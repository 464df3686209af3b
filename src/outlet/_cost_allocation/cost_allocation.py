import time

import numpy as np
from numba import njit  # type: ignore[attr-defined]
from osgeo import gdal

from outlet._pointer import decode_pointer_grid, pointer_codes
from outlet._util.constants import (
    DEFAULT_LABEL_NODATA,
    FLOW_DIRECTION_NODATA,
    NEIGHBOR_OFFSETS,
    PROPAGATION_CYCLE,
    PROPAGATION_OFF_GRID,
    PROPAGATION_OK,
    UNRESOLVED_LABEL,
)
from outlet._util.errors import FlowPathError, GridShapeMismatchError
from outlet._util.progress import ProgressCallback, RowProgress
from outlet._util.raster import (
    check_same_shape,
    create_dataset,
    open_dataset,
    read_band,
    stamp_provenance,
)
from outlet.codes import FlowDirection, PointerScheme


def initialize_labels(
    sources: np.ndarray,
    source_nodata: float,
    flow_dirs: np.ndarray,
    label_nodata: float,
) -> np.ndarray:
    """
    Build the label grid that propagation starts from.

    Source cells are the valid, strictly positive cells of ``sources`` and keep
    their value. Cells with a nodata flow direction become ``label_nodata``.
    Every other cell is set to UNRESOLVED_LABEL.

    Parameters
    ----------
    sources : np.ndarray
        Source raster values.
    source_nodata : float
        Nodata value of the source raster (``NaN`` if it has none).
    flow_dirs : np.ndarray
        Decoded flow directions, see ``decode_pointer_grid``.
    label_nodata : float
        Value written to cells that do not drain to any source.

    Returns
    -------
    np.ndarray
        float64 label grid.
    """
    if label_nodata == UNRESOLVED_LABEL:
        raise ValueError(
            f"The label nodata value {label_nodata} is reserved for unresolved cells"
        )
    if sources.shape != flow_dirs.shape:
        raise GridShapeMismatchError(
            {"source": sources.shape, "backlink": flow_dirs.shape}
        )
    sources = sources.astype(np.float64, copy=False)
    labels = np.full(sources.shape, UNRESOLVED_LABEL, dtype=np.float64)
    labels[flow_dirs == FLOW_DIRECTION_NODATA] = label_nodata
    with np.errstate(invalid="ignore"):
        is_source = (sources != source_nodata) & ~np.isnan(sources) & (sources > 0)
    labels[is_source] = sources[is_source]
    return labels


@njit(nogil=True)
def propagate_labels(
    flow_dirs: np.ndarray,
    labels: np.ndarray,
    label_nodata: float,
    row_start: int = 0,
    row_end: int = -1,
) -> tuple[int, int, int]:
    """
    Give every unresolved cell the label of the cell its flow path reaches.

    Walks start from each cell of rows ``[row_start, row_end)`` that still
    holds UNRESOLVED_LABEL. The first walk follows the flow directions until it
    steps onto a cell that is no longer unresolved (its value is the outlet
    label) or stands on a cell without a direction (the outlet is
    ``label_nodata``). The second walk retraces the same path and writes the
    outlet label to every cell, so no later walk goes down this path again.
    ``labels`` is modified in place.

    Parameters
    ----------
    flow_dirs : np.ndarray
        Decoded flow directions (0-7, FLOW_DIRECTION_UNDEFINED or
        FLOW_DIRECTION_NODATA).
    labels : np.ndarray
        float64 label grid, see ``initialize_labels``.
    label_nodata : float
        Label given to paths ending at a cell without a direction.
    row_start, row_end : int, optional
        Rows to start walks from. ``row_end < 0`` means the last row.

    Returns
    -------
    tuple[int, int, int]
        ``(status, row, col)``. ``status`` is PROPAGATION_OK,
        PROPAGATION_OFF_GRID (row, col is the cell pointing off the grid) or
        PROPAGATION_CYCLE (row, col is the cell the endless walk started from).
    """
    rows, cols = labels.shape
    if row_end < 0:
        row_end = rows
    max_steps = rows * cols

    for row in range(row_start, row_end):
        for col in range(cols):
            if labels[row, col] != UNRESOLVED_LABEL:
                continue

            outlet = label_nodata
            r, c = row, col
            steps = 0
            while True:
                direction = flow_dirs[r, c]
                if direction < 0:
                    break
                next_r = r + NEIGHBOR_OFFSETS[direction, 0]
                next_c = c + NEIGHBOR_OFFSETS[direction, 1]
                if next_r < 0 or next_r >= rows or next_c < 0 or next_c >= cols:
                    return PROPAGATION_OFF_GRID, r, c
                r, c = next_r, next_c
                if labels[r, c] != UNRESOLVED_LABEL:
                    outlet = labels[r, c]
                    break
                steps += 1
                if steps > max_steps:
                    return PROPAGATION_CYCLE, row, col

            r, c = row, col
            while labels[r, c] == UNRESOLVED_LABEL:
                labels[r, c] = outlet
                direction = flow_dirs[r, c]
                if direction < 0:
                    break
                r += NEIGHBOR_OFFSETS[direction, 0]
                c += NEIGHBOR_OFFSETS[direction, 1]

    return PROPAGATION_OK, -1, -1


def raise_for_status(status: int, row: int, col: int, flow_dirs: np.ndarray) -> None:
    """Turn a ``propagate_labels`` status into a FlowPathError."""
    if status == PROPAGATION_OFF_GRID:
        direction = FlowDirection(int(flow_dirs[row, col])).name
        raise FlowPathError(
            f"The flow direction {direction} at row {row}, column {col} "
            "points outside of the raster",
            row,
            col,
        )
    if status == PROPAGATION_CYCLE:
        raise FlowPathError(
            f"The flow path starting at row {row}, column {col} never reaches "
            "an outlet, the flow directions contain a cycle",
            row,
            col,
        )


def allocate(
    flow_dirs: np.ndarray,
    sources: np.ndarray,
    source_nodata: float = np.nan,
    label_nodata: float = DEFAULT_LABEL_NODATA,
    progress_callback: ProgressCallback | None = None,
) -> np.ndarray:
    """
    Label every cell with the source it drains to.

    Parameters
    ----------
    flow_dirs : np.ndarray
        Decoded flow directions, see ``decode_pointer_grid``.
    sources : np.ndarray
        Source raster, sources are valid cells with a positive value.
    source_nodata : float, optional
        Nodata value of ``sources``, by default NaN.
    label_nodata : float, optional
        Label of cells draining to no source, by default DEFAULT_LABEL_NODATA.
    progress_callback : ProgressCallback | None, optional
        Optional callback for progress reporting, by default None (silent).

    Returns
    -------
    np.ndarray
        float64 allocation grid.

    Raises
    ------
    GridShapeMismatchError
        If ``flow_dirs`` and ``sources`` differ in shape.
    FlowPathError
        If a flow path leaves the grid or loops forever.
    """
    labels = initialize_labels(sources, source_nodata, flow_dirs, label_nodata)
    rows = labels.shape[0]
    row_progress = RowProgress(progress_callback, "Propagate labels", rows)
    for row in range(rows):
        status, bad_row, bad_col = propagate_labels(
            flow_dirs, labels, label_nodata, row, row + 1
        )
        raise_for_status(status, bad_row, bad_col, flow_dirs)
        row_progress.row_done(row)
    return labels


def _cost_allocation_core(
    source_path: str,
    backlink_path: str,
    output_path: str,
    pointer_scheme: PointerScheme | str = PointerScheme.WHITEBOX,
    progress_callback: ProgressCallback | None = None,
) -> None:
    """
    Write a raster that labels each cell with the source it is connected to.

    Parameters
    ----------
    source_path : str
        Path to the source raster. Valid, positive cells are sources and their
        values are the labels.
    backlink_path : str
        Path to the back-link (D8 pointer) raster.
    output_path : str
        Path to the output allocation raster (GeoTIFF).
    pointer_scheme : PointerScheme | str, optional
        Convention of the back-link raster values, by default whitebox.
    progress_callback : ProgressCallback | None, optional
        Optional callback for progress reporting, by default None (silent).

    Returns
    -------
    None
    """
    source_ds = open_dataset(source_path)
    backlink_ds = open_dataset(backlink_path)
    check_same_shape(source=source_ds, backlink=backlink_ds)

    sources, source_nodata = read_band(source_ds)
    pointer, pointer_nodata = read_band(backlink_ds)
    label_nodata = DEFAULT_LABEL_NODATA if np.isnan(source_nodata) else source_nodata

    start = time.perf_counter()
    flow_dirs = decode_pointer_grid(
        pointer, pointer_nodata, pointer_codes(pointer_scheme)
    )
    labels = allocate(flow_dirs, sources, source_nodata, label_nodata, progress_callback)
    elapsed = time.perf_counter() - start

    output_ds = create_dataset(
        output_path,
        label_nodata,
        gdal.GDT_Float64,
        source_ds.RasterXSize,
        source_ds.RasterYSize,
        source_ds.GetGeoTransform(),
        source_ds.GetProjection(),
    )
    stamp_provenance(
        output_ds,
        "cost_allocation",
        {"source": source_path, "backlink": backlink_path},
        elapsed,
    )
    output_band = output_ds.GetRasterBand(1)
    output_band.WriteArray(labels)

    output_band.FlushCache()
    output_ds.FlushCache()
    output_band = None
    output_ds = None
    source_ds = None
    backlink_ds = None

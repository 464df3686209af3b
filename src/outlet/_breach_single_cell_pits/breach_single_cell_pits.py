import time
from typing import NamedTuple

import numpy as np
from numba import njit, prange  # type: ignore[attr-defined]
from osgeo import gdal

from outlet._util.constants import (
    BREACH_CELL,
    CHUNK_BUFFER_SIZE,
    DEFAULT_CHUNK_SIZE,
    NEIGHBOR_OFFSETS,
    NO_RING_CELL,
    PIT_BREACHED,
    PIT_NONE,
    PIT_UNSOLVED,
    SECOND_ORDER_OFFSETS,
)
from outlet._util.progress import ProgressCallback, silent_callback
from outlet._util.raster import (
    create_dataset,
    nodata_or_nan,
    open_dataset,
    raster_chunker,
    stamp_provenance,
)


class PitSummary(NamedTuple):
    """Number of single cell pits found and how many of them were breached."""

    pits: int
    breached: int

    @property
    def unsolved(self) -> int:
        return self.pits - self.breached


@njit(parallel=True)
def find_single_cell_pits(
    dem: np.ndarray, nodata_value: float
) -> tuple[np.ndarray, np.ndarray]:
    """
    Find single cell pits and the ring cell each of them can drain to.

    A valid cell is a pit when none of its valid neighbors is strictly lower.
    Cells in the interior of a flat (every neighbor present, valid and equal)
    are not pits; a cell next to nodata or with at least one higher neighbor is.
    Neighbors outside of the array are ignored.

    For every pit the 16 cells two steps away are searched, in
    SECOND_ORDER_OFFSETS order, for the first valid cell strictly lower than the
    pit.

    Parameters
    ----------
    dem : np.ndarray
        Elevations. Not modified.
    nodata_value : float
        Value from dem representing no data. NaN cells are always nodata.

    Returns
    -------
    tuple[np.ndarray, np.ndarray]
        ``pits``: int8, PIT_BREACHED for pits with a lower ring cell,
        PIT_UNSOLVED for pits without, PIT_NONE elsewhere.
        ``ring``: int8, index into SECOND_ORDER_OFFSETS of the ring cell for
        breachable pits, NO_RING_CELL elsewhere.
    """
    rows, cols = dem.shape
    pits = np.zeros((rows, cols), dtype=np.int8)
    ring = np.full((rows, cols), NO_RING_CELL, dtype=np.int8)

    for row in prange(rows):
        for col in range(cols):
            z = dem[row, col]
            if z == nodata_value or np.isnan(z):
                continue
            is_sink = True
            is_interior_flat = True
            for k in range(8):
                n_row = row + NEIGHBOR_OFFSETS[k, 0]
                n_col = col + NEIGHBOR_OFFSETS[k, 1]
                if n_row < 0 or n_row >= rows or n_col < 0 or n_col >= cols:
                    continue
                zn = dem[n_row, n_col]
                if zn == nodata_value or np.isnan(zn):
                    is_interior_flat = False
                    continue
                if zn < z:
                    is_sink = False
                    break
                if zn > z:
                    is_interior_flat = False

            if not is_sink or is_interior_flat:
                continue

            pits[row, col] = PIT_UNSOLVED
            for k in range(16):
                n_row = row + SECOND_ORDER_OFFSETS[k, 0]
                n_col = col + SECOND_ORDER_OFFSETS[k, 1]
                if n_row < 0 or n_row >= rows or n_col < 0 or n_col >= cols:
                    continue
                zn = dem[n_row, n_col]
                if zn == nodata_value or np.isnan(zn):
                    continue
                if zn < z:
                    pits[row, col] = PIT_BREACHED
                    ring[row, col] = k
                    break

    return pits, ring


@njit
def apply_breaches(dem: np.ndarray, ring: np.ndarray, breached: np.ndarray) -> None:
    """
    Lower one neighbor of every breachable pit, in row-major order.

    The neighbor between the pit and its ring cell is set to the mean of their
    elevations. Elevations are read from ``dem`` and written to ``breached``,
    so when two pits lower the same cell the one later in row-major order wins.
    """
    rows, cols = dem.shape
    for row in range(rows):
        for col in range(cols):
            k = ring[row, col]
            if k == NO_RING_CELL:
                continue
            z = dem[row, col]
            zn = dem[row + SECOND_ORDER_OFFSETS[k, 0], col + SECOND_ORDER_OFFSETS[k, 1]]
            direction = BREACH_CELL[k]
            breached[
                row + NEIGHBOR_OFFSETS[direction, 0],
                col + NEIGHBOR_OFFSETS[direction, 1],
            ] = (z + zn) / 2


def breach_single_cell_pits_in_chunk(
    chunk: np.ndarray, nodata_value: float
) -> tuple[np.ndarray, np.ndarray]:
    """
    Breach single cell pits in a DEM array.

    Parameters
    ----------
    chunk : np.ndarray
        A DEM or a chunk of a DEM. Not modified.
    nodata_value : float
        Value from chunk representing no data.

    Returns
    -------
    tuple[np.ndarray, np.ndarray]
        The breached copy of ``chunk`` and the int8 pit raster
        (PIT_NONE, PIT_BREACHED or PIT_UNSOLVED per cell).
    """
    if nodata_value is None:
        nodata_value = np.nan
    pits, ring = find_single_cell_pits(chunk, nodata_value)
    breached = chunk.copy()
    apply_breaches(chunk, ring, breached)
    return breached, pits


def _breach_single_cell_pits(
    input_path: str,
    output_path: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress_callback: ProgressCallback | None = None,
) -> PitSummary:
    """
    Breach single cell pits in a DEM raster.

    Parameters
    ----------
    input_path : str
        The path to the input DEM raster.
    output_path : str
        The path to save the output DEM raster with breached single cell pits.
    chunk_size : int, optional
        The size of the chunks in which the DEM is processed, by default
        DEFAULT_CHUNK_SIZE. Use chunk_size <= 1 to process the DEM in one piece.
    progress_callback : ProgressCallback | None, optional
        Optional callback for progress reporting, by default None (silent).

    Returns
    -------
    PitSummary
        Counts of pits found and breached.
    """
    if progress_callback is None:
        progress_callback = silent_callback

    input_raster = open_dataset(input_path)
    band = input_raster.GetRasterBand(1)
    nodata_value = nodata_or_nan(band)
    data_type = (
        gdal.GDT_Float64 if band.DataType == gdal.GDT_Float64 else gdal.GDT_Float32
    )
    dtype = np.float64 if data_type == gdal.GDT_Float64 else np.float32

    output_ds = create_dataset(
        output_path,
        nodata_value,
        data_type,
        input_raster.RasterXSize,
        input_raster.RasterYSize,
        input_raster.GetGeoTransform(),
        input_raster.GetProjection(),
    )
    output_band = output_ds.GetRasterBand(1)

    progress_callback(
        step_name="Breach pits", step_number=1, total_steps=1, progress=0.0
    )

    n_pits = 0
    n_breached = 0
    elapsed = 0.0
    for chunk in raster_chunker(
        band,
        chunk_size=chunk_size,
        chunk_buffer_size=CHUNK_BUFFER_SIZE,
        progress_callback=progress_callback,
    ):
        start = time.perf_counter()
        breached, pits = breach_single_cell_pits_in_chunk(
            chunk.data.astype(dtype, copy=False), nodata_value
        )
        elapsed += time.perf_counter() - start
        interior_pits = pits[chunk.interior()]
        n_pits += int(np.count_nonzero(interior_pits != PIT_NONE))
        n_breached += int(np.count_nonzero(interior_pits == PIT_BREACHED))
        chunk.from_numpy(breached)
        chunk.write(output_band)

    stamp_provenance(output_ds, "breach_single_cell_pits", {"input": input_path}, elapsed)

    output_band.FlushCache()
    output_ds.FlushCache()
    output_band = None
    output_ds = None
    band = None
    input_raster = None

    return PitSummary(pits=n_pits, breached=n_breached)

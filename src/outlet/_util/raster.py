import math
from collections.abc import Iterator

import numpy as np
from osgeo import gdal

from outlet._util.errors import GridShapeMismatchError
from outlet._util.progress import ProgressCallback, silent_callback
from outlet._util.timer import Timer

gdal.UseExceptions()


def open_dataset(path: str) -> gdal.Dataset:
    """
    Open a GDAL supported raster for reading.

    Parameters
    ----------
    path : str
        Path to the raster.

    Returns
    -------
    gdal.Dataset
        The opened dataset.

    Raises
    ------
    ValueError
        If GDAL returns no dataset for the path.
    """
    dataset = gdal.Open(path)
    if dataset is None:
        raise ValueError(f"Could not open raster file {path}")
    return dataset


def nodata_or_nan(band: gdal.Band) -> float:
    """Nodata value of a band, ``NaN`` when the band does not declare one."""
    nodata_value = band.GetNoDataValue()
    return np.nan if nodata_value is None else float(nodata_value)


def read_band(dataset: gdal.Dataset, dtype=np.float64) -> tuple[np.ndarray, float]:
    """Read the first band of a dataset into memory along with its nodata value."""
    band = dataset.GetRasterBand(1)
    array = band.ReadAsArray().astype(dtype, copy=False)
    return array, nodata_or_nan(band)


def check_same_shape(**datasets: gdal.Dataset) -> None:
    """
    Check that all datasets have the same number of rows and columns.

    Keyword names are used to describe the datasets in the error message.

    Raises
    ------
    GridShapeMismatchError
        If any two datasets differ in rows or columns.
    """
    shapes = {
        name: (dataset.RasterYSize, dataset.RasterXSize)
        for name, dataset in datasets.items()
    }
    if len(set(shapes.values())) > 1:
        raise GridShapeMismatchError(shapes)


def create_dataset(
    path: str,
    nodata_value: float,
    data_type: int,
    x_size: int,
    y_size: int,
    geotransform: tuple,
    projection: str,
) -> gdal.Dataset:
    """
    Create a single band GeoTIFF for output.

    Parameters
    ----------
    path : str
        Path of the new raster.
    nodata_value : float
        Nodata value of the band.
    data_type : int
        GDAL data type of the band (e.g. ``gdal.GDT_Float32``).
    x_size, y_size : int
        Number of columns and rows.
    geotransform : tuple
        Geotransform copied from the input raster.
    projection : str
        Projection WKT copied from the input raster.

    Returns
    -------
    gdal.Dataset
        The new dataset, open for writing.
    """
    driver = gdal.GetDriverByName("GTiff")
    dataset = driver.Create(
        path,
        x_size,
        y_size,
        1,
        data_type,
        options=["TILED=YES", "COMPRESS=LZW", "BIGTIFF=IF_SAFER"],
    )
    if geotransform is not None:
        dataset.SetGeoTransform(geotransform)
    if projection:
        dataset.SetProjection(projection)
    band = dataset.GetRasterBand(1)
    band.SetNoDataValue(nodata_value)
    return dataset


def stamp_provenance(
    dataset: gdal.Dataset,
    tool_name: str,
    inputs: dict[str, str],
    elapsed_seconds: float,
) -> None:
    """
    Record where a raster came from in its metadata.

    Parameters
    ----------
    dataset : gdal.Dataset
        Output dataset, open for writing.
    tool_name : str
        Name of the tool that created the raster.
    inputs : dict[str, str]
        Input description (e.g. ``"source"``) to input path.
    elapsed_seconds : float
        Processing time, excluding raster I/O.
    """
    dataset.SetMetadataItem("CREATED_BY", f"Created by outlet's {tool_name} tool")
    for description, path in inputs.items():
        dataset.SetMetadataItem(f"{description.upper()}_FILE", str(path))
    dataset.SetMetadataItem(
        "ELAPSED_TIME",
        f"{Timer.format_duration(elapsed_seconds)} (excluding I/O)",
    )


class RasterChunk:
    """
    A tile of a raster band together with a buffer of surrounding cells.

    The buffer is clipped at the raster edges, it is never padded. ``data``
    therefore covers ``[buffer_row_off, buffer_row_off + data.shape[0])`` rows
    of the band (and the same for columns), and :meth:`write` only writes the
    tile itself back.

    Parameters
    ----------
    row, col : int
        Tile indices (not cell indices).
    chunk_size : int
        Tile width and height in cells.
    buffer_size : int
        Number of cells read around the tile on each side.
    """

    def __init__(self, row: int, col: int, chunk_size: int, buffer_size: int):
        self.row = row
        self.col = col
        self.chunk_size = chunk_size
        self.buffer_size = buffer_size
        self.data = np.empty((0, 0))
        self.row_off = row * chunk_size
        self.col_off = col * chunk_size
        self.rows = 0
        self.cols = 0
        self.buffer_row_off = 0
        self.buffer_col_off = 0

    def _set_window(self, x_size: int, y_size: int) -> None:
        self.rows = min(self.chunk_size, y_size - self.row_off)
        self.cols = min(self.chunk_size, x_size - self.col_off)
        self.buffer_row_off = max(0, self.row_off - self.buffer_size)
        self.buffer_col_off = max(0, self.col_off - self.buffer_size)

    def read(self, band: gdal.Band) -> None:
        """Read the tile and its buffer from ``band``."""
        self._set_window(band.XSize, band.YSize)
        row_end = min(band.YSize, self.row_off + self.rows + self.buffer_size)
        col_end = min(band.XSize, self.col_off + self.cols + self.buffer_size)
        self.data = band.ReadAsArray(
            self.buffer_col_off,
            self.buffer_row_off,
            col_end - self.buffer_col_off,
            row_end - self.buffer_row_off,
        )

    def from_numpy(self, data: np.ndarray) -> None:
        """Replace the chunk data with an array of the same shape."""
        if data.shape != self.data.shape:
            raise ValueError(
                f"Array of shape {data.shape} does not match chunk shape {self.data.shape}"
            )
        self.data = data

    def interior(self) -> tuple[slice, slice]:
        """Slices selecting the tile (without buffer) from ``data``."""
        row_start = self.row_off - self.buffer_row_off
        col_start = self.col_off - self.buffer_col_off
        return (
            slice(row_start, row_start + self.rows),
            slice(col_start, col_start + self.cols),
        )

    def write(self, band: gdal.Band) -> None:
        """Write the tile (without buffer) to ``band``."""
        band.WriteArray(self.data[self.interior()], self.col_off, self.row_off)


def raster_chunker(
    band: gdal.Band,
    chunk_size: int,
    chunk_buffer_size: int = 0,
    progress_callback: ProgressCallback | None = None,
) -> Iterator[RasterChunk]:
    """
    Iterate over a raster band in buffered tiles, row-major.

    A ``Chunk i/n`` progress message is emitted after each tile has been
    handled by the caller.

    Parameters
    ----------
    band : gdal.Band
        The band to read.
    chunk_size : int
        Tile width and height in cells. ``chunk_size <= 1`` yields the whole
        band as a single tile.
    chunk_buffer_size : int, optional
        Number of cells read around each tile, by default 0.
    progress_callback : ProgressCallback | None, optional
        Optional callback for progress reporting, by default None (silent).

    Yields
    ------
    RasterChunk
        The next tile, already read.
    """
    if progress_callback is None:
        progress_callback = silent_callback
    if chunk_size <= 1:
        chunk_size = max(band.XSize, band.YSize)

    n_chunk_rows = math.ceil(band.YSize / chunk_size)
    n_chunk_cols = math.ceil(band.XSize / chunk_size)
    total_chunks = n_chunk_rows * n_chunk_cols
    chunk_number = 0
    for row in range(n_chunk_rows):
        for col in range(n_chunk_cols):
            chunk = RasterChunk(row, col, chunk_size, chunk_buffer_size)
            chunk.read(band)
            yield chunk
            chunk_number += 1
            progress_callback(
                message=f"Chunk {chunk_number}/{total_chunks}",
                progress=chunk_number / total_chunks,
            )

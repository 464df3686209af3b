"""
Outlet - raster surfaces derived from D8 flow directions.

- cost_allocation: Label each cell with the source its flow path reaches
- breach_single_cell_pits: Breach single cell pits in a DEM
"""

from outlet._breach_single_cell_pits import PitSummary, _breach_single_cell_pits
from outlet._cost_allocation import _cost_allocation_core
from outlet._util.constants import DEFAULT_CHUNK_SIZE
from outlet._util.errors import FlowPathError, GridShapeMismatchError
from outlet._util.progress import ProgressCallback
from outlet.codes import FlowDirection, PointerScheme

__version__ = "0.1.0"


def cost_allocation(
    source_path: str,
    backlink_path: str,
    output_path: str,
    pointer_scheme: PointerScheme | str = PointerScheme.WHITEBOX,
    progress_callback: ProgressCallback | None = None,
) -> None:
    """
    Identify the source cell each grid cell is connected to.

    Every cell follows the back-link (D8 pointer) raster downstream until it
    reaches a labelled cell, and takes that label. Cells whose path ends at a
    cell without a direction, and nodata cells of the back-link raster, are
    nodata in the output. This is the catchment ("watershed") of each source in
    a cost-distance or flow direction analysis.

    Args:
        source_path: Path to the source raster. All valid, positive cells are
            sources and their value is used as the label.
        backlink_path: Path to the back-link raster, e.g. from a cost-distance
            tool or a D8 flow direction tool.
        output_path: Path for the output allocation raster (GeoTIFF).
        pointer_scheme: Convention of the back-link values, one of
            "whitebox" (default), "esri" or "ordinal".
        progress_callback: Optional callback function for progress reporting.

    Raises:
        GridShapeMismatchError: If the rasters differ in rows or columns.
        FlowPathError: If a flow path leaves the raster or never ends.
    """
    _cost_allocation_core(
        source_path, backlink_path, output_path, pointer_scheme, progress_callback
    )


def breach_single_cell_pits(
    input_path: str,
    output_path: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress_callback: ProgressCallback | None = None,
) -> PitSummary:
    """
    Remove single cell pits from a DEM by breaching.

    A pit is drained by lowering one of its eight neighbors to halfway between
    the pit and a strictly lower cell two steps away. Pits that cannot be
    drained this way are left unchanged.

    Args:
        input_path: Path to the input DEM raster file.
        output_path: Path for the output breached DEM raster file.
        chunk_size: Size of processing chunks in pixels. Use chunk_size <= 1 for
            in-memory processing. Default is 2048.
        progress_callback: Optional callback function for progress reporting.

    Returns:
        The number of pits found and breached.
    """
    return _breach_single_cell_pits(
        input_path, output_path, chunk_size, progress_callback
    )


__all__ = [
    # Core functions
    "cost_allocation",
    "breach_single_cell_pits",
    # Enums
    "FlowDirection",
    "PointerScheme",
    # Types
    "PitSummary",
    "ProgressCallback",
    # Errors
    "FlowPathError",
    "GridShapeMismatchError",
]

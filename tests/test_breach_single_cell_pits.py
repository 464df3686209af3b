import numpy as np
import pytest
from osgeo import gdal

from outlet import breach_single_cell_pits
from outlet._breach_single_cell_pits import (
    _breach_single_cell_pits,
    apply_breaches,
    breach_single_cell_pits_in_chunk,
    find_single_cell_pits,
)
from outlet._util.constants import (
    NO_RING_CELL,
    PIT_BREACHED,
    PIT_NONE,
    PIT_UNSOLVED,
)


def write_dem(path: str, dem: np.ndarray, nodata_value: float) -> None:
    driver = gdal.GetDriverByName("GTiff")
    rows, cols = dem.shape
    dataset = driver.Create(path, cols, rows, 1, gdal.GDT_Float32)
    dataset.SetGeoTransform([0, 1, 0, 0, 0, -1])
    band = dataset.GetRasterBand(1)
    band.SetNoDataValue(nodata_value)
    band.WriteArray(dem)
    dataset.FlushCache()
    dataset = None


def read_dem(path: str) -> np.ndarray:
    dataset = gdal.Open(path)
    array = dataset.GetRasterBand(1).ReadAsArray()
    dataset = None
    return array


@pytest.fixture(name="plateau")
def fixture_plateau():
    """A 5x5 plateau of 10 with a pit of 1 in the center."""
    dem = np.full((5, 5), 10, dtype=np.float32)
    dem[2, 2] = 1
    return dem


@pytest.fixture(name="raster_file_path")
def fixture_raster_file_path():
    """A 5x5 DEM with one breachable pit and one pit on the left edge.

    Yields:
        str: Path to the DEM in GDAL's in-memory file system.
    """
    output_path = "/vsimem/test_raster_breach.tif"
    array = np.array(
        [
            [2, 2, 2, 2, 2],
            [-1, 2, 2, 2, 2],
            [2, 2, 0, 2, 2],
            [2, 2, 2, 2, 2],
            [2, 2, 2, 2, 2],
        ],
        dtype=np.float32,
    )
    write_dem(output_path, array, -np.inf)
    yield output_path
    gdal.Unlink(output_path)


@pytest.fixture(name="random_dem_path")
def fixture_random_dem_path():
    """A rough 23x17 DEM with many pits, ties and some nodata cells."""
    rng = np.random.default_rng(42)
    dem = rng.integers(0, 12, size=(23, 17)).astype(np.float32)
    dem[rng.random(dem.shape) < 0.05] = -9999
    path = "/vsimem/random_dem.tif"
    write_dem(path, dem, -9999)
    yield path, dem
    gdal.Unlink(path)


def test_pit_breached_toward_lower_second_order_cell(plateau):
    """Only the neighbor between the pit and the lower ring cell changes."""
    plateau[0, 2] = 0
    expected = plateau.copy()
    expected[1, 2] = 0.5

    breached, pits = breach_single_cell_pits_in_chunk(plateau, -9999)

    assert np.array_equal(breached, expected)
    assert pits[2, 2] == PIT_BREACHED
    # the edge cell of value 0 has only higher neighbors and nothing lower around it
    assert pits[0, 2] == PIT_UNSOLVED
    assert np.count_nonzero(pits) == 2


def test_input_is_not_modified(plateau):
    plateau[0, 2] = 0
    original = plateau.copy()
    breach_single_cell_pits_in_chunk(plateau, -9999)
    assert np.array_equal(plateau, original)


def test_pit_without_lower_ring_cell_is_left(plateau):
    """A pit with no strictly lower cell two steps away is not repaired."""
    breached, pits = breach_single_cell_pits_in_chunk(plateau, -9999)
    assert np.array_equal(breached, plateau)
    assert pits[2, 2] == PIT_UNSOLVED


def test_flat_is_not_a_pit():
    """Cells that only see equal neighbors are not pits."""
    dem = np.full((4, 6), 3, dtype=np.float64)
    pits, ring = find_single_cell_pits(dem, -9999)
    assert np.all(pits == PIT_NONE)
    assert np.all(ring == NO_RING_CELL)


def test_corner_pit_is_breached():
    """Corner cells are only compared with in-bounds neighbors."""
    dem = np.array(
        [
            [3, 5, 1],
            [5, 5, 5],
            [5, 5, 5],
        ],
        dtype=np.float32,
    )
    expected = np.array(
        [
            [3, 2, 1],
            [5, 5, 5],
            [5, 5, 5],
        ],
        dtype=np.float32,
    )
    breached, pits = breach_single_cell_pits_in_chunk(dem, -9999)
    assert np.array_equal(breached, expected)
    assert pits[0, 0] == PIT_BREACHED
    assert pits[0, 2] == PIT_UNSOLVED


def test_corner_with_higher_neighbors_is_a_pit():
    dem = np.array(
        [
            [1, 5, 5],
            [5, 5, 5],
            [5, 5, 5],
        ],
        dtype=np.float32,
    )
    pits, _ = find_single_cell_pits(dem, -9999)
    assert pits[0, 0] == PIT_UNSOLVED
    assert np.count_nonzero(pits) == 1


def test_nodata_neighbors_are_ignored():
    """A cell whose valid neighbors are all higher is a pit next to nodata."""
    dem = np.array(
        [
            [-9999, 5, 5],
            [5, 2, 5],
            [5, 5, 5],
        ],
        dtype=np.float32,
    )
    breached, pits = breach_single_cell_pits_in_chunk(dem, -9999)
    assert pits[1, 1] == PIT_UNSOLVED
    assert np.count_nonzero(pits) == 1
    assert np.array_equal(breached, dem)


def test_nodata_ring_cells_are_skipped():
    """Nodata is never chosen as the lower second-order cell."""
    dem = np.array([[0, 9, 4, 9, -9999]], dtype=np.float32)
    expected = np.array([[0, 2, 4, 9, -9999]], dtype=np.float32)
    breached, pits = breach_single_cell_pits_in_chunk(dem, -9999)
    assert np.array_equal(breached, expected)
    assert pits[0, 2] == PIT_BREACHED


def test_nan_is_nodata():
    dem = np.array([[0, 9, 4, 9, np.nan]], dtype=np.float32)
    breached, _ = breach_single_cell_pits_in_chunk(dem, None)
    assert breached[0, 1] == 2
    assert np.isnan(breached[0, 4])


def test_first_ring_cell_in_clockwise_order_wins(plateau):
    """With two lower ring cells, the first one from the upper right is used."""
    plateau[0, 2] = 0  # ring position 14
    plateau[2, 4] = 0  # ring position 2
    breached, _ = breach_single_cell_pits_in_chunk(plateau, -9999)
    assert breached[2, 3] == 0.5
    assert breached[1, 2] == 10


def test_later_pit_wins_shared_breach_cell():
    """When two pits lower the same cell, the later one in row-major order wins."""
    dem = np.full((5, 5), 9, dtype=np.float64)
    ring = np.full((5, 5), NO_RING_CELL, dtype=np.int8)
    # (1, 1) lowers its south east neighbor toward (3, 3)
    dem[1, 1] = 6
    dem[3, 3] = 2
    ring[1, 1] = 4
    # (2, 3) lowers its west neighbor toward (2, 1)
    dem[2, 3] = 8
    dem[2, 1] = 2
    ring[2, 3] = 10
    breached = dem.copy()
    apply_breaches(dem, ring, breached)
    assert breached[2, 2] == 5
    assert np.count_nonzero(breached != dem) == 1


def test_breach_single_cell_pits(raster_file_path):
    """Test the single cell pits are breached in a raster file."""
    expected = np.array(
        [
            [2, 2, 2, 2, 2],
            [-1, 2, 2, 2, 2],
            [2, -0.5, 0, 2, 2],
            [2, 2, 2, 2, 2],
            [2, 2, 2, 2, 2],
        ],
        dtype=np.float32,
    )
    results_path = "/vsimem/test_breach_single_cell_pits.tif"
    summary = breach_single_cell_pits(raster_file_path, results_path, chunk_size=5)
    assert np.allclose(read_dem(results_path), expected)
    assert summary.pits == 2
    assert summary.breached == 1
    assert summary.unsolved == 1
    gdal.Unlink(results_path)


def test_breach_single_cell_pits_metadata(raster_file_path):
    results_path = "/vsimem/test_breach_metadata.tif"
    _breach_single_cell_pits(raster_file_path, results_path, chunk_size=0)
    dataset = gdal.Open(results_path)
    assert (
        dataset.GetMetadataItem("CREATED_BY")
        == "Created by outlet's breach_single_cell_pits tool"
    )
    assert dataset.GetMetadataItem("INPUT_FILE") == raster_file_path
    assert dataset.GetMetadataItem("ELAPSED_TIME").endswith("(excluding I/O)")
    assert dataset.GetRasterBand(1).GetNoDataValue() == -np.inf
    dataset = None
    gdal.Unlink(results_path)


@pytest.mark.parametrize("chunk_size", [1, 3, 4, 5, 16])
def test_tiled_matches_in_memory(random_dem_path, chunk_size):
    """Chunks that do not evenly divide the raster give the same result."""
    dem_path, dem = random_dem_path
    expected, pits = breach_single_cell_pits_in_chunk(dem, -9999)

    results_path = f"/vsimem/test_breach_tiled_{chunk_size}.tif"
    summary = _breach_single_cell_pits(dem_path, results_path, chunk_size=chunk_size)

    assert np.array_equal(read_dem(results_path), expected)
    assert summary.pits == np.count_nonzero(pits)
    assert summary.breached == np.count_nonzero(pits == PIT_BREACHED)
    gdal.Unlink(results_path)


def test_missing_input_raises():
    with pytest.raises(RuntimeError):
        _breach_single_cell_pits("/vsimem/does_not_exist.tif", "/vsimem/out.tif")

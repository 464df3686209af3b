class GridShapeMismatchError(ValueError):
    """Co-registered rasters do not share the same number of rows and columns."""

    def __init__(self, shapes: dict[str, tuple[int, int]]) -> None:
        self.shapes = shapes
        described = ", ".join(
            f"{name} is {rows} x {cols}" for name, (rows, cols) in shapes.items()
        )
        super().__init__(
            "The input rasters must have the same number of rows and columns "
            f"({described})"
        )


class FlowPathError(RuntimeError):
    """A flow path left the grid or never reached an outlet.

    The pointer grid is expected to only point at cells inside the raster and to
    be free of cycles.
    """

    def __init__(self, message: str, row: int, col: int) -> None:
        self.row = row
        self.col = col
        super().__init__(message)

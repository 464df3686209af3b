"""Timing and run summary utilities for outlet commands."""

import time
from contextlib import contextmanager
from pathlib import Path

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

console = Console(force_terminal=True)

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB", "PB")


class ResourceStats:
    """Collect what a command did, for the summary panel printed at the end.

    Three things are kept: how long each timed step took (in the order the
    steps first ran), named result values such as the number of pits
    breached, and the rasters that were written.
    """

    def __init__(self) -> None:
        self.stats: dict[str, float] = {}
        self.operation_order: list[str] = []
        self.results: dict[str, int | float | str] = {}
        self.output_files: list[tuple[str, Path]] = []

    def add_stats(self, description: str, duration: float) -> None:
        """Record the duration in seconds of a step. Repeated steps keep their slot."""
        self.stats[description] = duration
        if description not in self.operation_order:
            self.operation_order.append(description)

    def add_result(self, description: str, value: int | float | str) -> None:
        self.results[description] = value

    def add_output_file(self, description: str, file_path: Path | str) -> None:
        """Record a raster written by the command (e.g. "Allocation")."""
        self.output_files.append((description, Path(file_path)))

    def reset(self) -> None:
        """Forget everything recorded so far."""
        self.stats.clear()
        self.operation_order.clear()
        self.results.clear()
        self.output_files.clear()

    @staticmethod
    def format_file_size(size_bytes: int) -> str:
        """Bytes as a short string with one decimal, e.g. ``2.0 KB``."""
        size = float(size_bytes)
        unit_index = 0
        while size >= 1024 and unit_index < len(SIZE_UNITS) - 1:
            size /= 1024
            unit_index += 1
        return f"{size:.1f} {SIZE_UNITS[unit_index]}"

    @staticmethod
    def _two_column_table(title: str, left: str, right: str) -> Table:
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column(left, style="blue", no_wrap=False)
        table.add_column(right, style="cyan", justify="right")
        return table

    def get_timing_table(self) -> Table:
        table = self._two_column_table("Step Timing", "Step", "Duration")
        for step in self.operation_order:
            table.add_row(step, Timer.format_duration(self.stats[step]))
        return table

    def get_results_table(self) -> Table | None:
        if not self.results:
            return None
        table = self._two_column_table("Results", "Result", "Value")
        for description, value in self.results.items():
            text = f"{value:,}" if isinstance(value, int) else str(value)
            table.add_row(description, text)
        return table

    def get_output_files_table(self) -> Table | None:
        """Written rasters with their size on disk, None if nothing was written.

        Paths on GDAL virtual file systems (``/vsimem/``, ``/vsis3/``) are
        listed without a size.
        """
        if not self.output_files:
            return None
        table = Table(title="Output Files", show_header=True, header_style="bold cyan")
        table.add_column("Raster", style="blue")
        table.add_column("Path", style="cyan", no_wrap=False)
        table.add_column("Size", style="green", justify="right")
        for description, file_path in self.output_files:
            if file_path.is_file():
                size = self.format_file_size(file_path.stat().st_size)
            elif str(file_path).startswith("/vsi"):
                size = "-"
            else:
                size = "[red]missing[/red]"
            table.add_row(description, str(file_path), size)
        return table

    def get_summary_panel(self, success: bool = True) -> Panel:
        """Build the panel printed when a command finishes or fails."""
        if success:
            status = Text("✓ Finished", style="bold green")
        else:
            status = Text("✗ Failed", style="bold red")

        sections: list = [status]
        tables = [self.get_timing_table() if self.stats else None]
        tables += [self.get_results_table(), self.get_output_files_table()]
        for table in tables:
            if table is not None:
                sections += [Text(), table]

        return Panel(
            Group(*sections),
            title="[bold blue]Outlet summary[/bold blue]",
            border_style="green" if success else "red",
            padding=(1, 2),
        )


resource_stats = ResourceStats()


class Timer:
    """Duration formatting shared by the console output and raster metadata."""

    @staticmethod
    def format_duration(seconds: float) -> str:
        """
        Convert seconds into a human readable string.

        Durations under a minute keep two decimals, longer ones are
        rounded to whole seconds (e.g. "2 minutes and 45 seconds").
        """
        if seconds < 60:
            return f"{seconds:.2f} seconds"

        remaining = int(seconds)
        parts = []
        for unit, unit_seconds in (("hour", 3600), ("minute", 60), ("second", 1)):
            count, remaining = divmod(remaining, unit_seconds)
            if count:
                parts.append(f"{count} {unit}" + ("" if count == 1 else "s"))

        if len(parts) == 1:
            return parts[0]
        return ", ".join(parts[:-1]) + " and " + parts[-1]


@contextmanager
def timer(description: str, silent: bool = False):
    """Time a block, record it in ``resource_stats`` and report it on the console.

    Example:
        >>> with timer("Breach single cell pits"):
        ...     breach_single_cell_pits("dem.tif", "breached.tif")
        ✓ Breach single cell pits completed in 2.31 seconds
    """
    start_time = time.perf_counter()
    if not silent:
        console.print(f"[bold blue]{description}...[/bold blue]")
    try:
        yield
    finally:
        duration = time.perf_counter() - start_time
        resource_stats.add_stats(description, duration)
        if not silent:
            console.print(
                f"[green]✓[/green] {description} completed in "
                f"[bold cyan]{Timer.format_duration(duration)}[/bold cyan]"
            )

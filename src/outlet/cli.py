import os
import sys

import click
from osgeo import gdal

from outlet import __version__, breach_single_cell_pits, cost_allocation
from outlet._util.cli_progress import RichProgressDisplay
from outlet._util.constants import DEFAULT_CHUNK_SIZE
from outlet._util.timer import console, resource_stats, timer
from outlet.codes import PointerScheme

# set gdal configuration
gdal.UseExceptions()
gdal.SetConfigOption("AWS_ACCESS_KEY_ID", os.getenv("AWS_ACCESS_KEY_ID", ""))
gdal.SetConfigOption("AWS_SECRET_ACCESS_KEY", os.getenv("AWS_SECRET_ACCESS_KEY", ""))
gdal.SetConfigOption("CPL_VSIL_USE_TEMP_FILE_FOR_RANDOM_WRITE", "YES")


def print_banner():
    """Display the Outlet banner and version."""
    if sys.stdout.isatty():
        console.print(
            f"[bold cyan]OUTLET[/bold cyan] [dim]Version {__version__}[/dim]\n"
        )
    else:
        print(f"OUTLET v{__version__}\n")


def resolve_path(path: str | None, working_dir: str | None) -> str | None:
    """Place a bare file name (no directory part) inside ``working_dir``."""
    if path is None or not working_dir:
        return path
    if os.sep in path or "/" in path:
        return path
    return os.path.join(working_dir, path)


def report_failure(command: str, exc: Exception, success: bool) -> None:
    console.print(
        f"[bold red]Error:[/bold red] {command} failed with the following exception: {str(exc)}"
    )
    if not success:
        console.print(resource_stats.get_summary_panel(success=False))


@click.group(invoke_without_command=True)
@click.pass_context
def main(ctx):
    """The main entry point for the command line interface."""
    print_banner()

    # If no subcommand was provided, show help
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command(name="cost-allocation")
@click.option(
    "--source_file",
    help="path to the GDAL supported raster dataset of source cells (positive values)",
    required=True,
)
@click.option(
    "--backlink_file",
    help="path to the GDAL supported raster dataset of the back-link (D8 pointer)",
    required=True,
)
@click.option(
    "--output_file",
    help="path to the output file (must be GeoTiff)",
    required=True,
)
@click.option(
    "--pointer_scheme",
    help="numbering convention of the back-link raster",
    type=click.Choice([scheme.value for scheme in PointerScheme]),
    default=PointerScheme.WHITEBOX.value,
    show_default=True,
)
@click.option(
    "--working_dir",
    help="directory for file names given without a directory",
    default=None,
)
def cost_allocation_cli(
    source_file: str,
    backlink_file: str,
    output_file: str,
    pointer_scheme: str,
    working_dir: str | None,
):
    """
    Identify the source cell to which each grid cell is connected.

    This command follows the back-link raster from every cell to the first
    labelled cell and assigns its label, giving the catchment of each source.
    """
    source_file = resolve_path(source_file, working_dir)
    backlink_file = resolve_path(backlink_file, working_dir)
    output_file = resolve_path(output_file, working_dir)
    success = False
    try:
        progress_display = RichProgressDisplay()
        with timer("Cost allocation"):
            with progress_display.progress_context("Allocating cells to sources"):
                cost_allocation(
                    source_file,
                    backlink_file,
                    output_file,
                    PointerScheme(pointer_scheme),
                    progress_display.callback,
                )
                resource_stats.add_output_file("Allocation", output_file)
                success = True

        console.print(resource_stats.get_summary_panel(success=success))
    except Exception as exc:
        report_failure("cost-allocation", exc, success)
        raise click.Abort()


@main.command(name="breach-pits")
@click.option(
    "--input_file",
    help="path to the GDAL supported raster dataset for the DEM",
    required=True,
)
@click.option(
    "--output_file",
    help="path to the output file (must be GeoTiff)",
    required=True,
)
@click.option(
    "--chunk_size",
    help="chunk size (use <= 1 for in-memory processing)",
    default=DEFAULT_CHUNK_SIZE,
)
@click.option(
    "--working_dir",
    help="directory for file names given without a directory",
    default=None,
)
def breach_pits_cli(
    input_file: str,
    output_file: str,
    chunk_size: int,
    working_dir: str | None,
):
    """
    Remove single cell pits from a DEM by breaching.

    This command lowers one neighbor of each single cell pit so that it drains
    to a lower cell two steps away. Larger depressions are left unchanged.
    """
    input_file = resolve_path(input_file, working_dir)
    output_file = resolve_path(output_file, working_dir)
    success = False
    try:
        progress_display = RichProgressDisplay()
        with timer("Breach single cell pits"):
            with progress_display.progress_context("Breaching pits"):
                summary = breach_single_cell_pits(
                    input_file,
                    output_file,
                    chunk_size,
                    progress_display.callback,
                )
                resource_stats.add_result("Pits found", summary.pits)
                resource_stats.add_result("Pits breached", summary.breached)
                resource_stats.add_result("Pits left unsolved", summary.unsolved)
                resource_stats.add_output_file("Breached DEM", output_file)
                success = True

        console.print(resource_stats.get_summary_panel(success=success))
    except Exception as exc:
        report_failure("breach-pits", exc, success)
        raise click.Abort()


if __name__ == "__main__":
    main()

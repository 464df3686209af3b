import re
import sys
import time
from contextlib import contextmanager

from rich.console import Console

from outlet._util.timer import Timer

# "Chunk 3/9" from tiled kernels, "Row 120/400" from row scans
COUNTED_MESSAGE = re.compile(r"(?:Chunk|Row)\s+(\d+)/(\d+)")

BAR_FRAMES = "■≡=-=≡"


def progress_bar(percentage: int, frame: str, bar_length: int = 10) -> str:
    """Build a fixed width bar such as ``■■■■=-----`` for a percentage."""
    filled_count = min(bar_length, percentage * bar_length // 100)
    bar = "■" * filled_count
    if filled_count < bar_length:
        bar += frame + "-" * (bar_length - filled_count - 1)
    return bar


class RichProgressDisplay:
    """Render :class:`~outlet._util.progress.ProgressCallback` reports.

    On a terminal the current step is redrawn in place with a progress bar
    each time a counted message (``Chunk i/n`` or ``Row i/n``) arrives. When
    output is redirected, one plain line is printed per report instead.
    """

    STEP_WIDTH = 34

    def __init__(
        self,
        console: Console | None = None,
        show_progress: bool = True,
    ) -> None:
        self.console = console if console is not None else Console(force_terminal=True)
        self.show_progress = show_progress
        self.is_tty = sys.stdout.isatty()
        self.current_phase = ""
        self.current_step = ""
        self.step_start_time = 0.0
        self.step_finished = True
        self.redraws = 0

    def _print_heading(self, text: str) -> None:
        if self.is_tty:
            self.console.print(f"\n[bold cyan]{text}[/bold cyan]")
        else:
            print(f"\n{text}", flush=True)

    def _begin_step(self, step: str) -> None:
        self._finish_step()
        self.current_step = step
        self.step_start_time = time.time()
        self.step_finished = False
        self.redraws = 0
        if self.is_tty:
            sys.stdout.write(f"\r\033[K  {step}")
            sys.stdout.flush()

    def _show_count(self, current: int, total: int) -> None:
        percentage = int(100 * current / total)
        if not self.is_tty:
            print(
                f"  {self.current_step}: {percentage}% ({current}/{total})",
                flush=True,
            )
            return
        self.redraws += 1
        frame = BAR_FRAMES[self.redraws % len(BAR_FRAMES)]
        elapsed = Timer.format_duration(time.time() - self.step_start_time)
        sys.stdout.write(
            f"\r\033[K  \033[1;36m{frame}\033[0m |{percentage:>3}%| "
            f"\033[36m{progress_bar(percentage, frame)}\033[0m "
            f"{current}/{total} | {elapsed} | {self.current_step}"
        )
        sys.stdout.flush()

    def _finish_step(self) -> None:
        """Print the final timing line of the current step, once."""
        if not self.current_step or self.step_finished:
            return
        elapsed = Timer.format_duration(time.time() - self.step_start_time)
        if self.is_tty:
            sys.stdout.write("\r\033[K")
            print(f"  {self.current_step.ljust(self.STEP_WIDTH)} ({elapsed})")
        else:
            print(f"  {self.current_step} - {elapsed}", flush=True)
        self.step_finished = True

    def callback(
        self,
        phase: str | None = None,
        step_name: str | None = None,
        step_number: int = 0,
        total_steps: int = 0,
        message: str = "",
        progress: float = 0.0,
    ) -> None:
        if not self.show_progress:
            return

        if phase is not None and phase != self.current_phase:
            self._finish_step()
            self.current_phase = phase
            self.current_step = ""
            self._print_heading(phase)

        if step_name is not None:
            step = step_name
            if total_steps > 1:
                step = f"{step_number}/{total_steps} {step_name}"
            if step != self.current_step:
                self._begin_step(step)

        counted = COUNTED_MESSAGE.match(message) if message else None
        if counted and self.current_step:
            current, total = int(counted.group(1)), int(counted.group(2))
            self._show_count(current, total)
            if current == total:
                self._finish_step()

    @contextmanager
    def progress_context(self, initial_message: str = ""):
        """Show ``initial_message`` as the phase heading and close the last step on exit."""
        if not self.show_progress:
            yield self
            return

        if initial_message:
            self.current_phase = initial_message
            self._print_heading(initial_message)
        try:
            yield self
        finally:
            self._finish_step()
            self.current_phase = ""
            self.current_step = ""
            self.step_finished = True

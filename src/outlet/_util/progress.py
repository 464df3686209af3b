from typing import Protocol, runtime_checkable


@runtime_checkable
class ProgressCallback(Protocol):
    """Protocol for progress reporting callbacks.

    Progress is reported in a small hierarchy:

    * **Phase**: the operation as a whole (e.g., 'Cost allocation').
    * **Step**: a named part of the phase (e.g., 'Propagate labels').
    * **Message**: detail within a step (e.g., 'Row 120/400' or 'Chunk 3/9').
    * **Progress**: float (0.0-1.0) completion of the current step.

    Progress reports are advisory. They never change what is computed.
    """

    def __call__(
        self,
        phase: str | None = None,
        step_name: str | None = None,
        step_number: int = 0,
        total_steps: int = 0,
        message: str = "",
        progress: float = 0.0,
    ) -> None:
        """Report progress for an operation."""
        ...


def silent_callback(
    phase: str | None = None,
    step_name: str | None = None,
    step_number: int = 0,
    total_steps: int = 0,
    message: str = "",
    progress: float = 0.0,
) -> None:
    """A no-op callback, used when no progress reporting is needed."""
    pass


class RowProgress:
    """Report progress of a row-by-row scan.

    A report is emitted only when the completed percentage changes, so a
    raster with many rows does not flood the callback.

    Args:
        callback: The progress callback to report to
        step_name: Name of the step the rows belong to
        total_rows: Number of rows in the scan
        step_number: Step number within the phase
        total_steps: Total number of steps in the phase
    """

    def __init__(
        self,
        callback: ProgressCallback | None,
        step_name: str,
        total_rows: int,
        step_number: int = 1,
        total_steps: int = 1,
    ) -> None:
        self.callback = callback if callback is not None else silent_callback
        self.total_rows = max(1, total_rows)
        self.step_number = step_number
        self.total_steps = total_steps
        self.last_percentage = -1
        self.callback(
            step_name=step_name,
            step_number=step_number,
            total_steps=total_steps,
            progress=0.0,
        )

    def row_done(self, row: int) -> None:
        """Mark ``row`` (0-indexed) as finished."""
        completed = row + 1
        percentage = int(100 * completed / self.total_rows)
        if percentage == self.last_percentage:
            return
        self.last_percentage = percentage
        self.callback(
            step_number=self.step_number,
            total_steps=self.total_steps,
            progress=completed / self.total_rows,
            message=f"Row {completed}/{self.total_rows}",
        )

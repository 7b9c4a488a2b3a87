"""Progress reporting for eval runs: rich progress bar, plain lines off-terminal."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn, TimeElapsedColumn


class ProgressReporter:
    """Runner progress callback that renders to a rich console.

    On a terminal a live bar is shown; otherwise (CI logs, pipes) one line
    is printed per finished case.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        self.failures = 0
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def start(self, total: int) -> None:
        self.failures = 0
        if not self.console.is_terminal:
            return
        self._progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
        )
        self._task = self._progress.add_task("Running", total=total)
        self._progress.start()

    def __call__(
        self, completed: int, total: int, case_name: str, elapsed: float, error: Optional[str],
    ) -> None:
        if error:
            self.failures += 1
        if self._progress is not None and self._task is not None:
            self._progress.update(self._task, completed=completed, description=case_name)
            return
        icon = "✗" if error else "✓"
        self.console.print(
            f"[{completed}/{total}] {case_name}: {icon} ({elapsed:.1f}s)",
            markup=False, highlight=False,
        )

    def finish(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
            self._task = None

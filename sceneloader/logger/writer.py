from typing import Any, Dict, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    Task,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn
)
from rich.text import Text

Logger = Console(width=120)


class ItersPerSecColumn(ProgressColumn):
    """Renders the iterations per second for a progress bar."""

    def __init__(self, suffix="it/s") -> None:
        super().__init__()
        self.suffix = suffix

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        if speed is None:
            return Text("?", style="progress.data.speed")
        return Text(f"{speed:.2f} {self.suffix}", style="progress.data.speed")


class LogColumn(ProgressColumn):
    """Renders the extra task fields, e.g. the current file name."""

    def render(self, task: Task) -> Text:
        return Text(" ".join(f"{k}: {v}" for k, v in task.fields.items()))


class ProgressLogger:
    """
    A progress display for loading steps with a known number of items.

    Parameters
    ----------
    description : str
        The description of the progress.
    suffix : Optional[str], optional
        The unit shown after the speed, by default None (speed hidden)

    Examples
    --------
    >>> progress_logger = ProgressLogger("Loading", suffix="images/s")
    >>> progress_logger.add_task("images", "Loading train images", 100)
    >>> with progress_logger.progress:
    >>>     for i in range(100):
    >>>         progress_logger.update("images")
    """

    def __init__(self, description: str, suffix: Optional[str] = None):
        self.description = description
        progress_list = [TextColumn("[progress.description]{task.description}"), BarColumn(
        ), TaskProgressColumn(show_speed=True)]
        progress_list += [ItersPerSecColumn(suffix=suffix)] if suffix else []
        progress_list += [TextColumn(
            "[progress.completed]{task.completed:>6d}/{task.total:>6d}")]
        progress_list += [TimeElapsedColumn()]
        progress_list += [TimeRemainingColumn(
            elapsed_when_finished=True, compact=True)]
        progress_list += [LogColumn()]
        self.progress = Progress(*progress_list, console=Logger, transient=False)

        self.tasks = {}

    def add_task(self, name: str, description: str, total_iter: int, log_dict: Optional[Dict[str, Any]] = None):
        """
        Add a task to the progress.

        Parameters
        ----------
        name : str
            The key used by `update`.
        description : str
            The description of the task.
        total_iter : int
            The total number of iterations.
        log_dict : Optional[Dict[str, Any]], optional
            Initial values of the extra fields.
        """
        self.tasks[name] = self.progress.add_task(
            description=description, total=total_iter, **(log_dict or {}))
        return self.tasks[name]

    def update(self, name: str, step: int = 1, log: Optional[Dict[str, Any]] = None):
        """
        Advance a task and refresh its extra fields.

        Parameters
        ----------
        step : int, optional
            The step to advance, by default 1
        log : Optional[Dict[str, Any]], optional
            The extra fields, by default None
        """
        if log:
            self.progress.update(self.tasks[name], **log)
        self.progress.advance(self.tasks[name], advance=step)

    def start(self):
        self.progress.start()

    def stop(self):
        self.progress.stop()

    def reset(self, name: str, visible: Optional[bool] = True):
        self.progress.reset(self.tasks[name], visible=visible)

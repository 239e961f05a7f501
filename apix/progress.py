"""apix progress - upload/download progress bars."""

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

UPLOAD = "upload"
DOWNLOAD = "download"

_LABELS = {
    UPLOAD: ("Uploading File", "Upload Complete"),
    DOWNLOAD: ("Downloading File", "Download Complete"),
}


class FileProgress:
    """Progress bar for one file transfer, drawn on stderr.

    Use as a context manager; ``advance`` is called once per chunk and only
    updates counters, the bar redraws on its own thread.
    """

    def __init__(self, direction: str, path: str, total: int | None = None):
        self.direction = direction
        self.path = path
        self.total = total or None
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=Console(stderr=True),
        )
        self._task = None

    def __enter__(self) -> "FileProgress":
        active, _ = _LABELS[self.direction]
        self._progress.start()
        self._task = self._progress.add_task(f"{active} {self.path}", total=self.total)
        return self

    def advance(self, size: int) -> None:
        self._progress.advance(self._task, size)

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            _, done = _LABELS[self.direction]
            self._progress.update(self._task, description=f"{done} {self.path}")
        self._progress.stop()

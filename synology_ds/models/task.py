"""
Read-only projections of Download Station tasks as returned by the list and get calls.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional


class TaskStatus(IntEnum):
    """Status codes reported by SYNO.DownloadStation2.Task."""

    WAITING = 1
    DOWNLOADING = 2
    PAUSED = 3
    FINISHING = 4
    FINISHED = 5
    HASH_CHECKING = 6
    PRE_SEEDING = 7
    SEEDING = 8
    FILEHOSTING_WAITING = 9
    EXTRACTING = 10
    PREPROCESSING = 11
    PREPROCESS_PASS = 12
    DOWNLOADED = 13
    POSTPROCESSING = 14
    CAPTCHA_NEEDED = 15


STATUS_LABELS = {
    TaskStatus.WAITING: "waiting",
    TaskStatus.DOWNLOADING: "downloading",
    TaskStatus.PAUSED: "paused",
    TaskStatus.FINISHING: "finishing",
    TaskStatus.FINISHED: "finished",
    TaskStatus.HASH_CHECKING: "hash checking",
    TaskStatus.PRE_SEEDING: "pre-seeding",
    TaskStatus.SEEDING: "seeding",
    TaskStatus.FILEHOSTING_WAITING: "filehost waiting",
    TaskStatus.EXTRACTING: "extracting",
    TaskStatus.PREPROCESSING: "preprocessing",
    TaskStatus.PREPROCESS_PASS: "preprocess pass",
    TaskStatus.DOWNLOADED: "downloaded",
    TaskStatus.POSTPROCESSING: "postprocessing",
    TaskStatus.CAPTCHA_NEEDED: "captcha needed",
}

ERROR_STATUS_RANGE = range(101, 135)


def describe_status(code: int) -> str:
    """Turns a raw status code into a label, e.g. 'downloading' or 'error (105)'."""
    try:
        return STATUS_LABELS[TaskStatus(code)]
    except ValueError:
        pass
    if code in ERROR_STATUS_RANGE:
        return f"error ({code})"
    return f"unknown ({code})"


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class Task:
    """A single download task. Replaced wholesale on every poll."""

    id: str
    title: str
    byte_size: int
    status: int
    transferred_bytes: int = 0
    download_speed: int = 0
    upload_speed: int = 0
    destination_path: Optional[str] = None
    username: str = ""
    task_type: str = ""
    uri: Optional[str] = None
    error_detail: Optional[str] = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Task":
        """Builds a task from one entry of the API's ``task`` array."""
        additional = payload.get("additional") or {}
        transfer = additional.get("transfer") or {}
        detail = additional.get("detail") or {}
        status_extra = payload.get("status_extra") or {}
        destination = (detail.get("destination") or "").strip() or None
        return cls(
            id=str(payload.get("id", "")),
            title=str(payload.get("title", "")),
            byte_size=_as_int(payload.get("size")),
            status=_as_int(payload.get("status")),
            transferred_bytes=_as_int(transfer.get("size_downloaded")),
            download_speed=_as_int(transfer.get("speed_download")),
            upload_speed=_as_int(transfer.get("speed_upload")),
            destination_path=destination,
            username=str(payload.get("username", "")),
            task_type=str(payload.get("type", "")),
            uri=detail.get("uri") or None,
            error_detail=status_extra.get("error_detail") or None,
        )

    @property
    def status_label(self) -> str:
        return describe_status(self.status)

    @property
    def is_downloading(self) -> bool:
        return self.status == TaskStatus.DOWNLOADING

    @property
    def progress(self) -> Optional[float]:
        """Percent downloaded, clamped to 0-100, or None when unknown."""
        if self.byte_size <= 0 or self.transferred_bytes <= 0:
            return None
        ratio = self.transferred_bytes / self.byte_size * 100.0
        return min(100.0, max(0.0, ratio))

    @property
    def transfer_speed(self) -> Optional[int]:
        """Download speed while downloading, upload speed while seeding."""
        if self.status == TaskStatus.DOWNLOADING and self.download_speed > 0:
            return self.download_speed
        if self.status == TaskStatus.SEEDING and self.upload_speed > 0:
            return self.upload_speed
        return None

    @property
    def time_remaining(self) -> Optional[float]:
        """Estimated seconds until completion for downloading tasks."""
        if self.status != TaskStatus.DOWNLOADING or self.download_speed <= 0:
            return None
        remaining = max(self.byte_size - self.transferred_bytes, 0)
        return remaining / self.download_speed


@dataclass(frozen=True)
class TaskOperation:
    """Result of a pause/resume/delete call: the tasks the service refused."""

    failed: list[tuple[str, int]] = field(default_factory=list)

    @classmethod
    def from_api(cls, payload: Optional[dict[str, Any]]) -> "TaskOperation":
        entries = (payload or {}).get("failed_task") or []
        return cls(
            failed=[(str(item.get("id", "")), _as_int(item.get("error"))) for item in entries]
        )

    @property
    def ok(self) -> bool:
        return not self.failed


def first_destination(tasks: list[Task]) -> Optional[str]:
    """Returns the first non-empty destination path in a task snapshot."""
    for task in tasks:
        if task.destination_path:
            return task.destination_path
    return None

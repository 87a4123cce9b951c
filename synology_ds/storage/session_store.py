"""
A host-keyed JSON file caching non-secret session state (token, account name and
default destination) between runs.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from synology_ds.models.session import SessionRecord
from synology_ds.utils.host import normalize_host_key

log = logging.getLogger(__name__)

DIR_MODE = 0o700
FILE_MODE = 0o600


class SessionStore:
    """
    Owns the persisted session file and is its only writer.

    Every mutation rewrites the whole mapping through a temporary file that is
    then renamed over the original, so a crash never leaves a partial file.
    With ``persist=False`` the store is a process-local map and nothing touches
    the disk.
    """

    def __init__(self, file_path: Optional[Path], persist: bool = True):
        """
        Initializes the store and loads any existing file.

        Args:
            file_path: Location of the sessions JSON file.
            persist: When False, records are kept in memory only.
        """
        self.file_path = file_path
        self.persist = persist and file_path is not None
        self._records: dict[str, SessionRecord] = {}
        if self.persist:
            self._records = self._read_file()

    def _read_file(self) -> dict[str, SessionRecord]:
        """Loads the mapping from disk. A missing or corrupt file yields no records."""
        if not self.file_path.is_file():
            return {}
        try:
            with open(self.file_path, encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            log.warning(f"[yellow]Ignoring unreadable session file {self.file_path}: {e}[/yellow]")
            return {}
        if not isinstance(raw, dict):
            log.warning(f"[yellow]Ignoring malformed session file {self.file_path}.[/yellow]")
            return {}

        records = {}
        for key, value in raw.items():
            if not isinstance(value, dict):
                continue
            host_key = normalize_host_key(key)
            try:
                records[host_key] = SessionRecord(**{**value, "host_key": host_key})
            except ValidationError as e:
                log.debug(f"Dropping invalid session record for '{key}': {e}")
        return records

    def _write_file(self) -> None:
        """Atomically replaces the session file with the current mapping."""
        directory = self.file_path.parent
        directory.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        try:
            os.chmod(directory, DIR_MODE)
        except OSError as e:
            log.debug(f"Could not tighten permissions on {directory}: {e}")

        payload: dict[str, Any] = {
            key: record.model_dump(mode="json", exclude={"host_key"})
            for key, record in sorted(self._records.items())
        }
        fd, temp_path = tempfile.mkstemp(prefix=".sessions_", suffix=".tmp", dir=directory)
        try:
            os.fchmod(fd, FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.file_path)
        except BaseException:
            Path(temp_path).unlink(missing_ok=True)
            raise

    def _commit(self) -> None:
        if not self.persist:
            return
        try:
            self._write_file()
        except OSError as e:
            log.warning(f"[yellow]Could not save session file {self.file_path}: {e}[/yellow]")

    def load(self, host: str) -> Optional[SessionRecord]:
        """Returns a copy of the record for a host, or None when there is none."""
        record = self._records.get(normalize_host_key(host))
        return record.model_copy() if record else None

    def save(self, host: str, record: SessionRecord) -> SessionRecord:
        """Stores a record for a host, stamping its update time."""
        host_key = normalize_host_key(host)
        stored = record.model_copy(
            update={"host_key": host_key, "updated_at": datetime.now(timezone.utc)}
        )
        self._records[host_key] = stored
        self._commit()
        return stored.model_copy()

    def update(self, host: str, **fields: Any) -> SessionRecord:
        """Merges fields into the host's record, creating it when absent."""
        host_key = normalize_host_key(host)
        current = self._records.get(host_key) or SessionRecord(host_key=host_key)
        return self.save(host_key, current.model_copy(update=fields))

    def delete(self, host: str) -> bool:
        """Removes the record for a host. Returns False if there was none."""
        if self._records.pop(normalize_host_key(host), None) is None:
            return False
        self._commit()
        return True

    def clear(self) -> int:
        """Removes every record. Returns how many were removed."""
        count = len(self._records)
        self._records.clear()
        self._commit()
        log.info(f"Cleared {count} cached session(s).")
        return count

    def hosts(self) -> list[str]:
        return sorted(self._records)

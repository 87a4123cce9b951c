"""
Async client for the Synology Download Station Web API (SYNO.DownloadStation2).
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp

from synology_ds.exceptions import (
    ConfigurationError,
    InvalidResponseError,
    RemoteError,
    SessionExpiredError,
    TransportError,
    UnauthorizedError,
)
from synology_ds.models.task import Task, TaskOperation, TaskStatus
from synology_ds.utils.host import canonical_host

from .codes import classify_error

log = logging.getLogger(__name__)

TASK_API = "SYNO.DownloadStation2.Task"
COMPLETE_API = "SYNO.DownloadStation2.Task.Complete"
AUTH_API = "SYNO.API.Auth"
ADDITIONAL_FIELDS = '["transfer","detail"]'
URL_SCHEMES = ("http://", "https://", "magnet:")


class DownloadStationClient:
    """
    Request/response wrapper whose only state is the current session token.

    Every call except ``login`` sends the token as ``_sid``. Remote failures are
    raised as typed exceptions carrying the API's numeric code; transport
    failures are raised as ``TransportError`` and never retried here.
    """

    API_PATH = "webapi/entry.cgi"

    def __init__(self, host: str, timeout_ms: int = 10_000, allow_insecure: bool = False):
        """
        Initializes the API client.

        Args:
            host: Base URL of the NAS, e.g. ``https://nas.local:5001``.
            timeout_ms: Total timeout for each request in milliseconds.
            allow_insecure: Skip TLS certificate verification (self-signed NAS).
        """
        self.host: str = canonical_host(host)
        self.timeout_ms = max(int(timeout_ms), 1)
        self.allow_insecure = allow_insecure

        self.session_token: Optional[str] = None

        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def endpoint(self) -> str:
        return f"{self.host}/{self.API_PATH}"

    @property
    def has_token(self) -> bool:
        return bool(self.session_token)

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=4,
                ssl=not self.allow_insecure,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": "synology-ds"},
                timeout=aiohttp.ClientTimeout(total=self.timeout_ms / 1000),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "DownloadStationClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _with_token(self, params: Dict[str, str]) -> Dict[str, str]:
        if not self.session_token:
            raise UnauthorizedError()
        return {**params, "_sid": self.session_token}

    async def _send(self, label: str, data: Any) -> Dict[str, Any]:
        """
        Posts a request body and decodes the JSON envelope.

        HTTP 401 means the session is gone, and the token is dropped.
        """
        await self._initialize_session()
        start_time = time.monotonic()
        try:
            async with self._session.post(self.endpoint, data=data) as r:
                duration_ms = (time.monotonic() - start_time) * 1000
                log.debug(f"{label} -> HTTP {r.status} in {duration_ms:.0f} ms")

                if r.status == 401:
                    self.session_token = None
                    raise SessionExpiredError(401, "Session expired.", label)
                if not 200 <= r.status < 300:
                    body = await r.text()
                    raise RemoteError(r.status, f"HTTP error: {body[:200]}", label)

                text = await r.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"API call {label} failed: {e!r}")
            raise TransportError(f"{label} failed: {str(e) or type(e).__name__}") from e

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidResponseError(f"{label}: response is not JSON.") from e
        if not isinstance(payload, dict) or "success" not in payload:
            raise InvalidResponseError(f"{label}: unexpected response shape.")
        return payload

    def _unwrap(
        self,
        payload: Dict[str, Any],
        context: str,
        *,
        login: bool = False,
        create: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """Returns the ``data`` member of a successful envelope or raises."""
        if payload.get("success"):
            data = payload.get("data")
            return data if isinstance(data, dict) else None

        error = payload.get("error") or {}
        code = error.get("code", -1) if isinstance(error, dict) else -1
        failure = classify_error(int(code), context=context, login=login, create=create)
        if isinstance(failure, SessionExpiredError):
            self.session_token = None
        raise failure

    async def _call(
        self, params: Dict[str, str], context: str, *, create: bool = False
    ) -> Optional[Dict[str, Any]]:
        payload = await self._send(params.get("method", "call"), self._with_token(params))
        return self._unwrap(payload, context, create=create)

    # Authentication
    async def login(self, account: str, secret: str, otp_code: Optional[str] = None) -> str:
        """
        Logs in and stores the returned session token.

        Returns:
            The new session token.
        """
        if not account or not account.strip():
            raise ConfigurationError("Username cannot be empty.")
        if not secret:
            raise ConfigurationError("Password cannot be empty.")

        params = {
            "api": AUTH_API,
            "version": "7",
            "method": "login",
            "account": account,
            "passwd": secret,
            "format": "sid",
        }
        if otp_code and otp_code.strip():
            params["otp_code"] = otp_code.strip()

        log.info(f"Authenticating as: {account}")
        payload = await self._send("login", params)
        data = self._unwrap(payload, "Authentication failed.", login=True)
        token = (data or {}).get("sid")
        if not token:
            raise InvalidResponseError("Authentication succeeded but no session was returned.")
        self.session_token = token
        log.debug(f"Session established ({token[:6]}...)")
        return token

    # Tasks
    async def list_tasks(self) -> List[Task]:
        data = await self._call(
            {
                "api": TASK_API,
                "version": "2",
                "method": "list",
                "additional": ADDITIONAL_FIELDS,
            },
            "Failed to list tasks.",
        )
        if data is None:
            raise InvalidResponseError("Failed to list tasks. Missing response data.")
        return [Task.from_api(item) for item in data.get("task") or []]

    async def get_tasks(self, ids: List[str]) -> List[Task]:
        ids = [task_id.strip() for task_id in ids if task_id and task_id.strip()]
        if not ids:
            raise ConfigurationError("Task IDs cannot be empty.")
        data = await self._call(
            {
                "api": TASK_API,
                "version": "2",
                "method": "get",
                "id": ",".join(ids),
                "additional": ADDITIONAL_FIELDS,
            },
            "Failed to fetch task info.",
        )
        if data is None:
            raise InvalidResponseError("Failed to fetch task info. Missing response data.")
        return [Task.from_api(item) for item in data.get("task") or []]

    async def create_task(self, url: str, destination: Optional[str] = None) -> None:
        url = (url or "").strip()
        if not url:
            raise ConfigurationError("URI cannot be empty.")
        if not url.startswith(URL_SCHEMES):
            raise ConfigurationError("URI must start with http://, https://, or magnet:.")

        params = {
            "api": TASK_API,
            "version": "2",
            "method": "create",
            "type": '"url"',
            "url": url,
            "create_list": "false",
        }
        if destination and destination.strip():
            params["destination"] = destination.strip()
        await self._call(params, "Failed to create task.", create=True)

    async def create_task_from_file(
        self, file_path: Path, destination: Optional[str] = None
    ) -> None:
        file_path = Path(file_path)
        try:
            content = file_path.read_bytes()
        except OSError as e:
            raise ConfigurationError(f"Cannot read '{file_path}': {e}") from e
        if not content:
            raise ConfigurationError("File data cannot be empty.")

        fields = {
            "api": TASK_API,
            "version": "2",
            "method": "create",
            "type": '"file"',
            "file": '["torrent"]',
            "create_list": "false",
        }
        if destination and destination.strip():
            fields["destination"] = json.dumps(destination.strip())

        form = aiohttp.FormData()
        for name, value in self._with_token(fields).items():
            form.add_field(name, value)
        form.add_field(
            "torrent",
            content,
            filename=file_path.name,
            content_type="application/x-bittorrent",
        )
        payload = await self._send("create", form)
        self._unwrap(payload, "Failed to create task from file.", create=True)

    async def pause_task(self, task_id: str) -> TaskOperation:
        data = await self._call(
            {"api": TASK_API, "version": "2", "method": "pause", "id": task_id},
            "Failed to pause task.",
        )
        return TaskOperation.from_api(data)

    async def resume_task(self, task_id: str) -> TaskOperation:
        data = await self._call(
            {"api": TASK_API, "version": "2", "method": "resume", "id": task_id},
            "Failed to resume task.",
        )
        return TaskOperation.from_api(data)

    async def complete_task(self, task_id: str) -> str:
        data = await self._call(
            {"api": COMPLETE_API, "version": "1", "method": "start", "id": task_id},
            "Failed to complete task.",
        )
        return str((data or {}).get("task_id") or task_id)

    async def delete_task(self, task_id: str, force: bool = False) -> TaskOperation:
        data = await self._call(
            {
                "api": TASK_API,
                "version": "2",
                "method": "delete",
                "id": task_id,
                "force_complete": "true" if force else "false",
            },
            "Failed to delete task.",
        )
        return TaskOperation.from_api(data)

    async def clear_completed(self) -> None:
        await self._call(
            {
                "api": TASK_API,
                "version": "2",
                "method": "delete_condition",
                "status": str(int(TaskStatus.FINISHED)),
            },
            "Failed to clear completed tasks.",
        )

"""Synchronous Qlik Sense Repository Service (QRS) client."""

from __future__ import annotations

import logging
import secrets
import ssl
import string
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
XRFKEY_LENGTH = 16
_XRFKEY_ALPHABET = string.ascii_letters + string.digits


@dataclass(slots=True)
class QrsError(Exception):
    """Base repository API error."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class QrsTransportError(QrsError):
    """Request never produced a response (DNS, TLS, timeout, refused)."""


@dataclass(slots=True)
class QrsAuthError(QrsTransportError):
    """The authentication handshake (NTLM/SPNEGO) failed before a response arrived."""


@dataclass(slots=True)
class QrsRequestError(QrsError):
    """Server answered with a non-success status."""

    status_code: int = 0


@dataclass(slots=True)
class QrsResponseError(QrsError):
    """Server answered, but the body is not what the API promises."""


def generate_xrfkey() -> str:
    """Return a random cross-site request forgery key accepted by QRS."""

    return "".join(secrets.choice(_XRFKEY_ALPHABET) for _ in range(XRFKEY_LENGTH))


class QrsClient:
    """httpx wrapper adding the xrfkey handshake and JSON decoding."""

    def __init__(  # noqa: PLR0913
        self,
        base_url: str | httpx.URL,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        headers: dict[str, str] | None = None,
        auth: httpx.Auth | None = None,
        verify: ssl.SSLContext | bool = False,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._xrfkey = generate_xrfkey()
        self._has_auth = auth is not None
        base_headers = {
            "Accept": "application/json",
            "X-Qlik-Xrfkey": self._xrfkey,
        }
        if headers:
            base_headers.update(headers)
        self._client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers=base_headers,
            params={"xrfkey": self._xrfkey},
            auth=auth,
            verify=verify,
            transport=transport or httpx.HTTPTransport(retries=0, verify=verify),
        )

    @property
    def base_url(self) -> httpx.URL:
        return self._client.base_url

    @property
    def xrfkey(self) -> str:
        return self._xrfkey

    def about(self) -> dict[str, Any]:
        """Read the service description; used as a connectivity check."""

        payload = self.get_json("/qrs/about")
        if not isinstance(payload, dict):
            raise QrsResponseError(message="Expected a JSON object from /qrs/about")
        return payload

    def list_reload_tasks(self) -> list[dict[str, Any]]:
        """List reload tasks; records may be a condensed projection."""

        payload = self.get_json("/qrs/reloadtask")
        if not isinstance(payload, list):
            raise QrsResponseError(
                message=f"Expected a JSON array from /qrs/reloadtask, got {type(payload).__name__}",
            )
        return [record for record in payload if isinstance(record, dict)]

    def get_reload_task(self, task_id: str) -> dict[str, Any]:
        """Fetch the full reload task record."""

        payload = self.get_json(f"/qrs/reloadtask/{task_id}")
        if not isinstance(payload, dict):
            raise QrsResponseError(message=f"Expected a JSON object for reload task {task_id}")
        return payload

    def update_reload_task(self, record: dict[str, Any]) -> Any:
        """Submit a full reload task record wrapped as ``{"task": record}``."""

        return self.post_json("/qrs/reloadtask/update", {"task": record})

    def get_json(self, path: str) -> Any:
        return self._request("GET", path)

    def post_json(self, path: str, body: Any) -> Any:
        return self._request("POST", path, json=body)

    def _request(self, method: str, path: str, *, json: Any = None) -> Any:
        logger.debug("%s %s", method, path)
        try:
            response = self._client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            raise QrsTransportError(message=f"{method} {path}: timeout") from exc
        except httpx.HTTPError as exc:
            raise QrsTransportError(message=f"{method} {path}: {exc}") from exc
        except Exception as exc:
            # auth flows raise their own error types (spnego, missing challenge header)
            if not self._has_auth:
                raise
            raise QrsAuthError(
                message=f"{method} {path}: authentication failed: {exc!r}",
            ) from exc

        if not response.is_success:
            raise QrsRequestError(
                message=f"{method} {path}: HTTP {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise QrsResponseError(message=f"{method} {path}: response is not valid JSON") from exc

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> QrsClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

"""Repository API transport: HTTP client and trust material."""

from set_task_retries.http.certificates import CertificateError, load_ssl_context
from set_task_retries.http.client import (
    QrsAuthError,
    QrsClient,
    QrsError,
    QrsRequestError,
    QrsResponseError,
    QrsTransportError,
)

__all__ = [
    "CertificateError",
    "QrsAuthError",
    "QrsClient",
    "QrsError",
    "QrsRequestError",
    "QrsResponseError",
    "QrsTransportError",
    "load_ssl_context",
]

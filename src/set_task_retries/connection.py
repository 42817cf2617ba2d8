"""Connection bootstrap: pick an authentication mode and build a connected client."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import click
import httpx
from httpx_ntlm import HttpNtlmAuth

from set_task_retries.config import Settings
from set_task_retries.http.certificates import CertificateError, load_ssl_context
from set_task_retries.http.client import QrsClient, QrsError

logger = logging.getLogger(__name__)

# QPS only offers NTLM to clients that identify as Windows.
NTLM_USER_AGENT = "Windows"


class ConfigurationError(click.UsageError):
    """Bad or missing CLI arguments; reported with the usage banner."""

    exit_code = 1


@dataclass(slots=True)
class ConnectionCheckError(QrsError):
    """The about read failed after the client was built."""


@dataclass(frozen=True, slots=True)
class CertificateDirectory:
    """Trust material exported to an explicit directory."""

    path: Path


@dataclass(frozen=True, slots=True)
class SystemStore:
    """Trust material from the machine's default export location."""


TrustSource = CertificateDirectory | SystemStore


@dataclass(frozen=True, slots=True)
class ProxyConnection:
    """NTLM through the proxy service, as the calling Windows user."""

    url: httpx.URL


@dataclass(frozen=True, slots=True)
class DirectConnection:
    """Certificate-authenticated connection straight to the repository port."""

    url: httpx.URL
    port: int
    user_directory: str
    user_id: str
    trust: TrustSource

    @property
    def base_url(self) -> httpx.URL:
        return self.url.copy_with(port=self.port)


ConnectionDescriptor = ProxyConnection | DirectConnection


def resolve_connection(
    *,
    ntlm: str | None,
    direct: tuple[str, str, str, str] | None,
    certs: Path | None,
) -> ConnectionDescriptor:
    """Select the authentication mode from parsed flags.

    ``--ntlm`` wins when both modes are given; direct-mode values are then
    never inspected.
    """

    if ntlm is not None:
        if direct is not None:
            logger.debug("Both --ntlm and --direct given; using --ntlm")
        return ProxyConnection(url=parse_server_url(ntlm))

    if direct is None:
        raise ConfigurationError("One of --ntlm or --direct is required.")

    url_raw, port_raw, user_directory, user_id = direct
    url = parse_server_url(url_raw)
    port = parse_port(port_raw)
    if not user_directory.strip() or not user_id.strip():
        raise ConfigurationError("User directory and user id must not be empty.")
    trust: TrustSource = CertificateDirectory(path=certs) if certs is not None else SystemStore()
    return DirectConnection(
        url=url,
        port=port,
        user_directory=user_directory,
        user_id=user_id,
        trust=trust,
    )


def parse_server_url(value: str) -> httpx.URL:
    """Parse an absolute http(s) server URL or raise a usage error."""

    try:
        url = httpx.URL(value.strip())
    except (httpx.InvalidURL, TypeError) as error:
        raise ConfigurationError(
            f"Failed to create REST client for url: {value}\n  Error message: {error}",
        ) from error
    if url.scheme not in {"http", "https"} or not url.host:
        raise ConfigurationError(
            f"Failed to create REST client for url: {value}\n"
            "  Error message: expected an absolute URL with http:// or https:// scheme",
        )
    return url


def parse_port(value: str) -> int:
    try:
        port = int(value)
    except ValueError as error:
        raise ConfigurationError(f"Failed to parse port as number: {value}") from error
    if not 0 < port < 65536:
        raise ConfigurationError(f"Port out of range: {port}")
    return port


def build_client(
    descriptor: ConnectionDescriptor,
    settings: Settings,
    *,
    emit: Callable[[str], None] = click.echo,
    transport: httpx.BaseTransport | None = None,
) -> QrsClient:
    """Bind the descriptor's credentials to a new client. No request is sent."""

    timeout = settings.connection.request_timeout_seconds
    if isinstance(descriptor, ProxyConnection):
        user = settings.connection.ntlm_user
        client = QrsClient(
            descriptor.url,
            timeout_seconds=timeout,
            headers={"User-Agent": NTLM_USER_AGENT},
            auth=HttpNtlmAuth(user, settings.connection.ntlm_password),
            verify=False,
            transport=transport,
        )
        emit(f"Connecting as NTLM user ({user}) to: {descriptor.url}")
        return client

    certs_dir = _trust_directory(descriptor.trust, settings)
    if isinstance(descriptor.trust, CertificateDirectory):
        emit(f"Loading certificates from directory: {certs_dir}")
    else:
        emit("Loading certificates from store.")
    try:
        context = load_ssl_context(certs_dir)
    except CertificateError as error:
        if error.kind == "directory":
            raise ConfigurationError(f"Directory not found: {error}") from error
        if error.kind == "file":
            raise ConfigurationError(f"File not found: {error}") from error
        raise ConfigurationError(f"Failed to load certificates: {error}") from error

    client = QrsClient(
        descriptor.base_url,
        timeout_seconds=timeout,
        headers={
            "X-Qlik-User": (
                f"UserDirectory={descriptor.user_directory}; UserId={descriptor.user_id}"
            ),
        },
        verify=context,
        transport=transport,
    )
    emit(
        "Connecting as direct connection as "
        f"({descriptor.user_directory}\\{descriptor.user_id}) to: "
        f"{descriptor.url}:{descriptor.port}",
    )
    return client


def verify_connection(client: QrsClient, *, emit: Callable[[str], None] = click.echo) -> None:
    """Issue the lightweight about read; any failure becomes ConnectionCheckError."""

    try:
        about = client.about()
    except QrsError as error:
        raise ConnectionCheckError(message=f"Failed to establish connection: {error}") from error
    logger.debug("Repository about: %s", about)
    emit("Connection successfully established.")


def _trust_directory(trust: TrustSource, settings: Settings) -> Path:
    if isinstance(trust, CertificateDirectory):
        return trust.path
    return settings.connection.certs_dir

from __future__ import annotations

import ssl
from pathlib import Path

import allure
import httpx
import pytest
from fakes import FakeQrs

from set_task_retries import connection
from set_task_retries.config import ConnectionSettings, Settings
from set_task_retries.connection import (
    NTLM_USER_AGENT,
    CertificateDirectory,
    ConfigurationError,
    ConnectionCheckError,
    DirectConnection,
    ProxyConnection,
    SystemStore,
    build_client,
    parse_port,
    parse_server_url,
    resolve_connection,
    verify_connection,
)

pytestmark = [
    allure.epic("Connection Bootstrap"),
    allure.feature("Mode selection"),
]

DIRECT = ("https://qlik.example.com", "4242", "INTERNAL", "sa_repository")


def test_ntlm_selects_proxy_connection() -> None:
    descriptor = resolve_connection(ntlm="https://qlik.example.com", direct=None, certs=None)

    assert isinstance(descriptor, ProxyConnection)
    assert descriptor.url.host == "qlik.example.com"


def test_ntlm_wins_without_parsing_direct_fields() -> None:
    descriptor = resolve_connection(
        ntlm="https://qlik.example.com",
        direct=("::bad url::", "not-a-port", "", ""),
        certs=None,
    )

    assert isinstance(descriptor, ProxyConnection)


def test_direct_builds_descriptor_with_system_store_by_default() -> None:
    descriptor = resolve_connection(ntlm=None, direct=DIRECT, certs=None)

    assert isinstance(descriptor, DirectConnection)
    assert descriptor.port == 4242
    assert descriptor.user_directory == "INTERNAL"
    assert descriptor.user_id == "sa_repository"
    assert descriptor.trust == SystemStore()
    assert descriptor.base_url.host == "qlik.example.com"
    assert descriptor.base_url.port == 4242


def test_direct_uses_certificate_directory_when_given(tmp_path: Path) -> None:
    descriptor = resolve_connection(ntlm=None, direct=DIRECT, certs=tmp_path)

    assert isinstance(descriptor, DirectConnection)
    assert descriptor.trust == CertificateDirectory(path=tmp_path)


def test_missing_mode_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="--ntlm or --direct") as error:
        resolve_connection(ntlm=None, direct=None, certs=None)

    assert error.value.exit_code == 1


def test_non_numeric_port_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="Failed to parse port as number: abc"):
        resolve_connection(ntlm=None, direct=(DIRECT[0], "abc", "D", "U"), certs=None)


def test_empty_user_fields_are_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="must not be empty"):
        resolve_connection(ntlm=None, direct=(DIRECT[0], "4242", " ", "U"), certs=None)


@pytest.mark.parametrize("value", ["qlik.example.com", "ftp://qlik.example.com", "https://"])
def test_parse_server_url_rejects_non_absolute_http_urls(value: str) -> None:
    with pytest.raises(ConfigurationError, match="Failed to create REST client for url"):
        parse_server_url(value)


@pytest.mark.parametrize("value", ["0", "65536", "-1"])
def test_parse_port_rejects_out_of_range(value: str) -> None:
    with pytest.raises(ConfigurationError, match="Port out of range"):
        parse_port(value)


def test_build_client_reports_missing_certificate_directory(tmp_path: Path) -> None:
    descriptor = resolve_connection(ntlm=None, direct=DIRECT, certs=tmp_path / "absent")
    lines: list[str] = []

    with pytest.raises(ConfigurationError, match="Directory not found"):
        build_client(descriptor, Settings(), emit=lines.append)

    assert lines == [f"Loading certificates from directory: {tmp_path / 'absent'}"]


def test_build_client_reports_missing_certificate_file(tmp_path: Path) -> None:
    descriptor = resolve_connection(ntlm=None, direct=DIRECT, certs=tmp_path)

    with pytest.raises(ConfigurationError, match="File not found: .*client.pem"):
        build_client(descriptor, Settings(), emit=lambda _line: None)


def test_build_client_system_store_reads_configured_directory(tmp_path: Path) -> None:
    settings = Settings(connection=ConnectionSettings(certs_dir=tmp_path / "store"))
    descriptor = resolve_connection(ntlm=None, direct=DIRECT, certs=None)
    lines: list[str] = []

    with pytest.raises(ConfigurationError, match="Directory not found: .*store"):
        build_client(descriptor, settings, emit=lines.append)

    assert lines == ["Loading certificates from store."]


def test_direct_client_targets_port_and_sends_user_header(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.setattr(connection, "load_ssl_context", lambda _path: ssl.create_default_context())
    fake = FakeQrs()
    descriptor = resolve_connection(ntlm=None, direct=DIRECT, certs=tmp_path)
    lines: list[str] = []

    client = build_client(descriptor, Settings(), emit=lines.append, transport=fake.transport())
    with client:
        verify_connection(client, emit=lines.append)

    request = fake.requests[0]
    assert request.url.port == 4242
    assert request.headers["X-Qlik-User"] == "UserDirectory=INTERNAL; UserId=sa_repository"
    assert lines[-2:] == [
        "Connecting as direct connection as (INTERNAL\\sa_repository) to: "
        "https://qlik.example.com:4242",
        "Connection successfully established.",
    ]


def test_proxy_client_identifies_as_windows() -> None:
    fake = FakeQrs()
    settings = Settings(connection=ConnectionSettings(ntlm_user="CORP\\alice"))
    descriptor = resolve_connection(ntlm="https://qlik.example.com", direct=None, certs=None)
    lines: list[str] = []

    client = build_client(descriptor, settings, emit=lines.append, transport=fake.transport())
    with client:
        verify_connection(client, emit=lines.append)

    assert fake.requests[0].headers["User-Agent"] == NTLM_USER_AGENT
    assert lines[0] == "Connecting as NTLM user (CORP\\alice) to: https://qlik.example.com"


def test_verify_connection_wraps_failures() -> None:
    fake = FakeQrs()
    fake.about_status = 503
    lines: list[str] = []

    with fake.client() as client, pytest.raises(ConnectionCheckError) as error:
        verify_connection(client, emit=lines.append)

    assert str(error.value).startswith("Failed to establish connection: ")
    assert "HTTP 503" in str(error.value)
    assert lines == []


@pytest.mark.parametrize(
    "headers",
    [{}, {"WWW-Authenticate": "Negotiate"}, {"WWW-Authenticate": "NTLM"}],
)
def test_ntlm_handshake_failure_is_a_connection_check_error(headers: dict[str, str]) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(401, headers=headers))
    descriptor = resolve_connection(ntlm="https://qlik.example.com", direct=None, certs=None)
    lines: list[str] = []

    client = build_client(descriptor, Settings(), emit=lines.append, transport=transport)
    with client, pytest.raises(ConnectionCheckError, match="Failed to establish connection"):
        verify_connection(client, emit=lines.append)

    assert "Connection successfully established." not in lines


def test_direct_client_loads_real_certificate_export(client_cert_dir: Path) -> None:
    fake = FakeQrs()
    descriptor = resolve_connection(ntlm=None, direct=DIRECT, certs=client_cert_dir)
    lines: list[str] = []

    client = build_client(descriptor, Settings(), emit=lines.append, transport=fake.transport())
    with client:
        verify_connection(client, emit=lines.append)

    assert lines[0] == f"Loading certificates from directory: {client_cert_dir}"
    assert lines[-1] == "Connection successfully established."

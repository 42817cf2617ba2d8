"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
import trustme
from fakes import FakeQrs, make_task

from set_task_retries.controllers import RetryCliController


@pytest.fixture()
def fake_qrs() -> FakeQrs:
    return FakeQrs([make_task("A", "X", 0), make_task("B", "Y", 3)])


@pytest.fixture()
def cli_transport(monkeypatch: pytest.MonkeyPatch, fake_qrs: FakeQrs) -> FakeQrs:
    """Route CLI traffic to the fake repository service."""

    monkeypatch.setattr(RetryCliController, "transport", fake_qrs.transport())
    for name in (
        "SET_TASK_RETRIES_DEFAULT_RETRIES",
        "SET_TASK_RETRIES_REQUEST_TIMEOUT_SECONDS",
        "SET_TASK_RETRIES_LOG_LEVEL",
        "SET_TASK_RETRIES_CERTS_DIR",
        "USERDOMAIN",
        "USERNAME",
        "USER",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SET_TASK_RETRIES_NTLM_USER", "CORP\\svc_reload")
    monkeypatch.setenv("SET_TASK_RETRIES_NTLM_PASSWORD", "secret")
    return fake_qrs


@pytest.fixture()
def client_cert_dir(tmp_path: Path) -> Path:
    """PEM export with a real client certificate and key issued by a throwaway CA."""

    ca = trustme.CA()
    issued = ca.issue_cert("sa-repository.qlik.example.com")
    directory = tmp_path / "certs"
    directory.mkdir()
    issued.cert_chain_pems[0].write_to_path(str(directory / "client.pem"))
    issued.private_key_pem.write_to_path(str(directory / "client_key.pem"))
    return directory

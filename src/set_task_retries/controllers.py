"""Controller for the retry reconciliation command."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import httpx

from set_task_retries.config import Settings
from set_task_retries.connection import build_client, resolve_connection, verify_connection
from set_task_retries.reconciler import ReconcileSummary, reconcile_task_retries


@dataclass(slots=True)
class SetRetriesCommand:
    """CLI inputs for one reconciliation run."""

    ntlm_url: str | None
    direct: tuple[str, str, str, str] | None
    certs: Path | None
    retries: int | None
    apply: bool


class RetryCliController:
    """Coordinates bootstrap and reconciliation for the CLI."""

    transport: httpx.BaseTransport | None = None

    def run(
        self,
        command: SetRetriesCommand,
        settings: Settings,
        emit: Callable[[str], None],
    ) -> ReconcileSummary:
        descriptor = resolve_connection(
            ntlm=command.ntlm_url,
            direct=command.direct,
            certs=command.certs,
        )
        with build_client(descriptor, settings, emit=emit, transport=self.transport) as client:
            verify_connection(client, emit=emit)

            if command.retries is None:
                target = settings.reconcile.default_retries
                emit(f"No retry count specified. Using default value: {target}")
            else:
                target = command.retries
                emit(f"Using specified retry count: {target}")
            emit("Applying changes to tasks." if command.apply else "Dry run only.")

            summary = ReconcileSummary()
            for decision in reconcile_task_retries(client, target, apply=command.apply):
                summary.add(decision)
                emit(decision.render())
        emit(summary.render())
        return summary

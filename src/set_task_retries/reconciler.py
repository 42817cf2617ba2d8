"""Reconcile reload task retry counts against a target value."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from set_task_retries.http.client import QrsResponseError

logger = logging.getLogger(__name__)


class RetryAction(str, Enum):
    """What the reconciler did for one task."""

    DRY_RUN = "dry_run"
    UNCHANGED = "unchanged"
    UPDATED = "updated"


class ReloadTaskApi(Protocol):
    """Subset of the repository API the reconciler relies on."""

    def list_reload_tasks(self) -> list[dict[str, Any]]: ...

    def get_reload_task(self, task_id: str) -> dict[str, Any]: ...

    def update_reload_task(self, record: dict[str, Any]) -> Any: ...


@dataclass(frozen=True, slots=True)
class ReloadTask:
    """Read-only snapshot of one listed reload task."""

    id: str
    name: str
    max_retries: int

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> ReloadTask:
        task_id = record.get("id")
        max_retries = record.get("maxRetries")
        if not isinstance(task_id, str) or not task_id:
            raise QrsResponseError(message=f"Reload task record without id: {record!r}")
        # bool is an int subclass; reject it explicitly
        if isinstance(max_retries, bool) or not isinstance(max_retries, int):
            raise QrsResponseError(
                message=f"Reload task {task_id} has no integer maxRetries: {max_retries!r}",
            )
        return cls(id=task_id, name=str(record.get("name", "")), max_retries=max_retries)


@dataclass(frozen=True, slots=True)
class TaskDecision:
    """Outcome for one task, in listing order."""

    task: ReloadTask
    action: RetryAction
    target: int

    def render(self) -> str:
        if self.action is RetryAction.DRY_RUN:
            note = "Dry run only, no change applied"
        elif self.action is RetryAction.UNCHANGED:
            note = "No need to update retry count"
        else:
            note = f"Setting retry count to {self.target}"
        return f"{self.task.id} ({self.task.max_retries}) - {note} : {self.task.name}"


@dataclass(slots=True)
class ReconcileSummary:
    """Per-action counters for a finished run."""

    total: int = 0
    updated: int = 0
    unchanged: int = 0
    dry_run: int = 0

    def add(self, decision: TaskDecision) -> None:
        self.total += 1
        if decision.action is RetryAction.UPDATED:
            self.updated += 1
        elif decision.action is RetryAction.UNCHANGED:
            self.unchanged += 1
        else:
            self.dry_run += 1

    def render(self) -> str:
        return (
            f"Tasks: total={self.total} updated={self.updated} "
            f"unchanged={self.unchanged} dry_run={self.dry_run}"
        )


def reconcile_task_retries(
    api: ReloadTaskApi,
    target: int,
    *,
    apply: bool,
) -> Iterator[TaskDecision]:
    """Yield one decision per listed task, updating mismatches when ``apply`` is set.

    The task list is read once. Each mismatching task is re-read in full before
    the update because the listing may be a condensed projection; only
    ``maxRetries`` is changed in the submitted record. Errors propagate and
    leave earlier updates in place.
    """

    if target < 0:
        raise ValueError(f"Target retry count must be >= 0, got {target}")

    records = api.list_reload_tasks()
    logger.info("Listed %d reload tasks", len(records))
    for record in records:
        task = ReloadTask.from_record(record)
        if not apply:
            yield TaskDecision(task=task, action=RetryAction.DRY_RUN, target=target)
            continue
        if task.max_retries == target:
            yield TaskDecision(task=task, action=RetryAction.UNCHANGED, target=target)
            continue

        full_record = api.get_reload_task(task.id)
        full_record["maxRetries"] = target
        api.update_reload_task(full_record)
        logger.info("Updated reload task %s maxRetries %d -> %d", task.id, task.max_retries, target)
        yield TaskDecision(task=task, action=RetryAction.UPDATED, target=target)

"""Persisted execution records.

Each dispatched task gets one record: created in the ``running`` state when
dispatch starts and updated once with the terminal outcome. Records live in a
single JSON file guarded by a lock, the same way server job state is kept.

This is intentionally small. If/when audit volume grows, this should move to
a real database behind the same ``AuditStore`` protocol.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, Field, ValidationError

from agent_runtime.core.models import ExecutionResult, Task

logger = logging.getLogger(__name__)

RecordStatus = str  # running | ok | error | partial


class AuditStore(Protocol):
    """Persistence boundary consumed by the dispatcher."""

    def create_record(self, task: Task, handler_name: str | None) -> str: ...

    def update_record(self, task_id: str, result: ExecutionResult) -> None: ...


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _json_safe(value: dict[str, Any]) -> dict[str, Any]:
    # Snapshot the payload; handlers may keep mutating it after dispatch.
    return json.loads(json.dumps(value, default=str))


class ExecutionRecord(BaseModel):
    """Audit projection of one task's lifecycle and outcome."""

    record_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    task_id: str
    task_type: str
    domain: str
    trace_id: str
    user_id: str | None = None
    handler_name: str | None = None
    status: RecordStatus = "running"
    summary: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    result: dict[str, Any] | None = None
    error_message: str | None = None
    started_at: datetime = Field(default_factory=_utc_now)
    completed_at: datetime | None = None
    latency_ms: int | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


@dataclass(frozen=True, slots=True)
class RecordPage:
    items: list[ExecutionRecord]
    total: int
    page: int
    size: int


class ExecutionRecordStore:
    """JSON-file backed, thread-safe store of execution records."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    def _load_unlocked(self) -> list[ExecutionRecord]:
        if not self._path.exists():
            return []
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning(
                "Execution record file is not valid JSON; treating as empty",
                extra={"path": str(self._path)},
            )
            return []
        if not isinstance(raw, list):
            logger.warning(
                "Execution record file has unexpected shape; treating as empty",
                extra={"path": str(self._path)},
            )
            return []

        records: list[ExecutionRecord] = []
        for item in raw:
            try:
                records.append(ExecutionRecord.model_validate(item))
            except ValidationError:
                logger.warning("Skipping malformed execution record", extra={"item": item})
        return records

    def _save_unlocked(self, records: list[ExecutionRecord]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = [r.model_dump(mode="json") for r in records]
        self._path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    # --- audit boundary -------------------------------------------------

    def create_record(self, task: Task, handler_name: str | None) -> str:
        record = ExecutionRecord(
            task_id=task.id,
            task_type=task.task_type,
            domain=task.domain,
            trace_id=task.trace_id,
            user_id=task.user_id,
            handler_name=handler_name,
            status="running",
            payload=_json_safe(task.payload),
        )
        with self._lock:
            records = self._load_unlocked()
            records.append(record)
            self._save_unlocked(records)
        return record.record_id

    def update_record(self, task_id: str, result: ExecutionResult) -> None:
        with self._lock:
            records = self._load_unlocked()
            # A resubmitted task has several records; the newest is the live one.
            for idx in range(len(records) - 1, -1, -1):
                record = records[idx]
                if record.task_id != task_id:
                    continue
                now = _utc_now()
                latency = result.latency_ms
                if latency is None:
                    latency = int((now - record.started_at).total_seconds() * 1000)
                records[idx] = record.model_copy(
                    update={
                        "status": result.status,
                        "summary": result.summary,
                        "result": _json_safe(result.data),
                        "error_message": _error_message(result),
                        "completed_at": now,
                        "latency_ms": latency,
                        "updated_at": now,
                    }
                )
                self._save_unlocked(records)
                return
        logger.warning("Execution record not found for update", extra={"task_id": task_id})

    # --- queries used by reporting --------------------------------------

    def list(self) -> list[ExecutionRecord]:
        with self._lock:
            return self._load_unlocked()

    def get(self, task_id: str) -> ExecutionRecord | None:
        for record in reversed(self.list()):
            if record.task_id == task_id:
                return record
        return None

    def find_by_trace(self, trace_id: str) -> list[ExecutionRecord]:
        return [r for r in self.list() if r.trace_id == trace_id]

    def find_by_user(self, user_id: str, *, page: int = 0, size: int = 20) -> RecordPage:
        matching = sorted(
            (r for r in self.list() if r.user_id == user_id),
            key=lambda r: r.started_at,
            reverse=True,
        )
        start = page * size
        return RecordPage(
            items=matching[start : start + size], total=len(matching), page=page, size=size
        )

    def recent(self, limit: int = 10) -> list[ExecutionRecord]:
        return sorted(self.list(), key=lambda r: r.started_at, reverse=True)[:limit]

    def find_by_time_range(self, start: datetime, end: datetime) -> list[ExecutionRecord]:
        lo, hi = _as_utc(start), _as_utc(end)
        return [r for r in self.list() if lo <= _as_utc(r.started_at) <= hi]

    def count_by_time_range(self, start: datetime, end: datetime) -> int:
        return len(self.find_by_time_range(start, end))

    def count_by_status(self, status: str) -> int:
        return sum(1 for r in self.list() if r.status == status)

    def handler_statistics(self) -> dict[str, int]:
        """Execution counts per handler; records without a handler count as ``unassigned``."""

        return dict(Counter(r.handler_name or "unassigned" for r in self.list()))

    def delete(self, task_id: str) -> bool:
        with self._lock:
            records = self._load_unlocked()
            kept = [r for r in records if r.task_id != task_id]
            if len(kept) == len(records):
                return False
            self._save_unlocked(kept)
            return True

    def delete_before(self, cutoff: datetime) -> int:
        limit = _as_utc(cutoff)
        with self._lock:
            records = self._load_unlocked()
            kept = [r for r in records if _as_utc(r.started_at) >= limit]
            self._save_unlocked(kept)
            return len(records) - len(kept)


def _error_message(result: ExecutionResult) -> str | None:
    if result.status != "error":
        return None
    detail = result.data.get("error")
    if detail is not None:
        return str(detail)
    return result.errors[0] if result.errors else result.summary

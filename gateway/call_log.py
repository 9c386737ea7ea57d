"""gateway/call_log.py

Append-only JSONL audit trail of tool calls, one file per UTC day.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class ToolCallEntry:
    """One logged tool call.

    Attributes:
        tool: Tool name (``ask``, ``search``, ...).
        model_id: Model (or comma-joined models) the call targeted.
        duration_ms: Wall-clock duration of the handler.
        input: Tool arguments as received.
        error: Error text when the call failed.
        timestamp: ISO 8601 UTC timestamp.
    """

    tool: str
    model_id: str
    duration_ms: int
    input: dict[str, Any]
    error: str | None = None
    timestamp: str = dataclasses.field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_json(self) -> str:
        record = dataclasses.asdict(self)
        if record["error"] is None:
            del record["error"]
        return json.dumps(record, ensure_ascii=False, default=str)


def log_file_for(log_dir: Path, when: datetime | None = None) -> Path:
    day = (when or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    return Path(log_dir) / f"{day}.jsonl"


def log_tool_call(entry: ToolCallEntry, log_dir: Path) -> None:
    """Append ``entry`` to today's log file.  Write failures are logged, never raised."""
    try:
        path = log_file_for(log_dir)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(entry.to_json() + "\n")
    except OSError as exc:
        logger.error("[call_log] failed to write tool-call log: %s", exc)

"""Structured per-invocation logs for later debugging."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .utils.slug import slugify

__all__ = ["InvocationRecord", "InvocationLogEntry", "load_invocation_log", "write_invocation_log"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class InvocationRecord:
    """What happened during one function invocation."""

    pipeline: str
    tag: str = ""
    model: str = ""
    system_prompt: str = ""
    prompt: str = ""
    reply: Optional[str] = None
    cleaned: Optional[str] = None
    salvaged: bool = False
    identifiers: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(slots=True)
class InvocationLogEntry:
    """In-memory representation of a stored invocation log."""

    path: Path
    payload: Mapping[str, Any]

    @property
    def pipeline(self) -> str:
        return str(self.payload.get("pipeline") or "")

    @property
    def tag(self) -> str:
        return str(self.payload.get("tag") or "")

    @property
    def error(self) -> Optional[str]:
        value = self.payload.get("error")
        if isinstance(value, str) and value:
            return value
        return None

    @property
    def identifiers(self) -> List[str]:
        value = self.payload.get("identifiers")
        if isinstance(value, list):
            return [str(item) for item in value]
        return []


def write_invocation_log(logs_root: Path, record: InvocationRecord) -> Optional[Path]:
    """Persist ``record`` as JSON under ``logs_root``; return the file written, if any."""
    try:
        logs_root.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        LOGGER.warning("Cannot create invocation log directory %s: %s", logs_root, error)
        return None

    entry: Dict[str, Any] = {"timestamp": datetime.now(timezone.utc).isoformat()}
    entry.update(_json_safe(record))

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    parts = ["invocation", slugify(record.pipeline, fallback="pipeline")]
    if record.tag:
        parts.append(slugify(record.tag))
    parts.append(timestamp)
    parts.append(uuid.uuid4().hex[:8])
    log_path = logs_root / ("__".join(parts) + ".json")
    try:
        with log_path.open("w", encoding="utf-8") as handle:
            json.dump(entry, handle, indent=2, sort_keys=True, ensure_ascii=False)
    except OSError as error:
        LOGGER.warning("Cannot write invocation log %s: %s", log_path, error)
        return None
    return log_path


def load_invocation_log(path: Path | str) -> InvocationLogEntry:
    """Load a structured invocation log from disk."""
    log_path = Path(path).resolve()
    with log_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    return InvocationLogEntry(path=log_path, payload=payload)


def _json_safe(value: Any) -> Any:
    """Coerce complex objects into JSON-serialisable representations."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return value.as_posix()
    if is_dataclass(value) and not isinstance(value, type):
        return _json_safe(asdict(value))
    if isinstance(value, dict):
        return {str(key): _json_safe(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(item) for item in value]
    return str(value)

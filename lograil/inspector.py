"""Inspector logic: discover log files and summarize parsed entries per context."""

import os
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime

from lograil.entry import LogEntry


def list_log_files(base_dir: str, logs_subdir: str = "logs", extension: str = ".log") -> list[str]:
    """Return live logs and numbered archives under <base_dir>/<logs_subdir>, sorted.

    Paths are relative to the logs directory, e.g. 'commands/validate.log.1'.
    """
    logs_dir = os.path.join(base_dir, logs_subdir)
    if not os.path.isdir(logs_dir):
        return []

    pattern = re.compile(re.escape(extension) + r"(\.\d+)?$")
    files = []
    for root, _dirs, names in os.walk(logs_dir):
        for name in names:
            if pattern.search(name):
                files.append(os.path.relpath(os.path.join(root, name), logs_dir))
    files.sort()
    return files


@dataclass
class ContextSummary:
    context_id: str
    component: str
    entries: int = 0
    first_timestamp: datetime | None = None
    last_timestamp: datetime | None = None
    raw_health: int = 0
    normalized_health: int = 0
    levels: Counter = field(default_factory=Counter)


def summarize_health(entries: list[LogEntry]) -> dict[str, ContextSummary]:
    """Group entries by context id; health figures come from the last entry seen."""
    summaries: dict[str, ContextSummary] = {}
    for entry in entries:
        summary = summaries.get(entry.context_id)
        if summary is None:
            summary = ContextSummary(context_id=entry.context_id, component=entry.component)
            summaries[entry.context_id] = summary

        summary.entries += 1
        summary.levels[entry.level] += 1
        summary.raw_health = entry.raw_health
        summary.normalized_health = entry.normalized_health
        if entry.timestamp is not None:
            if summary.first_timestamp is None or entry.timestamp < summary.first_timestamp:
                summary.first_timestamp = entry.timestamp
            if summary.last_timestamp is None or entry.timestamp > summary.last_timestamp:
                summary.last_timestamp = entry.timestamp
    return summaries


def entry_to_dict(entry: LogEntry) -> dict:
    """JSON-friendly view of an entry (context, interactions and semantic blocks flattened to dicts)."""
    data = {
        "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
        "level": entry.level,
        "component": entry.component,
        "user": entry.user,
        "context_id": entry.context_id,
        "event": entry.event,
        "details": dict(entry.details),
        "raw_health": entry.raw_health,
        "normalized_health": entry.normalized_health,
        "health_impact": entry.health_impact,
    }
    if entry.context is not None:
        ctx = entry.context
        data["context"] = {
            "user": ctx.user,
            "host": ctx.host,
            "pid": ctx.pid,
            "shell": ctx.shell.format(),
            "cwd": ctx.cwd,
            "environment": dict(ctx.env_state),
            "security": ctx.security.to_dict(),
            "resources": ctx.resources.to_dict(),
        }
    if entry.interactions is not None:
        data["interactions"] = {k: v for k, v in vars(entry.interactions).items() if v}
    if entry.semantic is not None:
        data["semantic"] = {k: v for k, v in vars(entry.semantic).items() if v}
    return data

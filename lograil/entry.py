"""Log entry model, builder and canonical text formatter.

Layout of one serialized entry:

    [2025-11-21 14:03:05.120] SUCCESS | validate | alice@host:4821 | validate-4821-169... | HEALTH: 42% (raw: 21, Δ+10) 🤍 [██████████████░░░░░░]
      EVENT: Validation passed
      DETAILS:
        files_checked: 15
      CONTEXT:
        ...
      INTERACTIONS:
        ...
      SEMANTIC:
        ...
    ---

A detail value that would not survive as one trimmed line (line breaks of any
kind, surrounding whitespace, a bare '|') is written as a 'key: |' block with
each line indented six spaces. Keys are escaped with escape_key().

lograil.parsing reads this layout back; keep the two modules in step.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from lograil.config import LoggingConfig, default_config
from lograil.context import Identity, SystemContext
from lograil.health import format_delta, health_bar, health_indicator

SECTION_INDENT = "  "
FIELD_INDENT = "    "
NESTED_INDENT = "      "

EVENT_HEADER = "EVENT:"
DETAILS_HEADER = "DETAILS:"
CONTEXT_HEADER = "CONTEXT:"
INTERACTIONS_HEADER = "INTERACTIONS:"
SEMANTIC_HEADER = "SEMANTIC:"

BLOCK_MARKER = "|"
LIST_MARKER = "-"

# every character str.splitlines() breaks on
LINE_BREAKS = frozenset("\n\r\x0b\x0c\x1c\x1d\x1e\x85\u2028\u2029")
KEY_ESCAPE = "\\"

SEMANTIC_SCALAR_FIELDS = (
    "operation_type",
    "operation_subtype",
    "error_type",
    "recovery_hint",
    "recovery_strategy",
)
SEMANTIC_MAP_FIELDS = ("error_details", "recovery_params", "expected", "actual")

INTERACTIONS_LIST_FIELDS = ("concurrent",)
INTERACTIONS_MAP_FIELDS = ("dependencies", "state_changes")


@dataclass
class SemanticMetadata:
    """Classification attached to an entry for automated follow-up routing."""

    operation_type: str = ""
    operation_subtype: str = ""
    error_type: str = ""
    error_details: dict[str, Any] = field(default_factory=dict)
    recovery_hint: str = ""
    recovery_strategy: str = ""
    recovery_params: dict[str, Any] = field(default_factory=dict)
    expected: dict[str, Any] = field(default_factory=dict)
    actual: dict[str, Any] = field(default_factory=dict)


@dataclass
class Interactions:
    """What else was going on while the entry was written."""

    concurrent: list[str] = field(default_factory=list)
    dependencies: dict[str, Any] = field(default_factory=dict)
    state_changes: dict[str, Any] = field(default_factory=dict)


@dataclass
class LogEntry:
    timestamp: datetime | None
    level: str
    component: str
    user: str
    context_id: str
    event: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    context: SystemContext | None = None
    interactions: Interactions | None = None
    semantic: SemanticMetadata | None = None
    raw_health: int = 0
    normalized_health: int = 0
    health_impact: int = 0


def build_entry(
    level: str,
    event: str,
    details: dict[str, Any] | None,
    *,
    component: str,
    identity: Identity,
    context_id: str,
    raw_health: int,
    normalized_health: int,
    health_impact: int,
    context: SystemContext | None = None,
    interactions: Interactions | None = None,
    semantic: SemanticMetadata | None = None,
    timestamp: datetime | None = None,
) -> LogEntry:
    """Assemble a LogEntry; health values must already include *health_impact*."""
    return LogEntry(
        timestamp=timestamp or datetime.now(),
        level=level,
        component=component,
        user=identity.format(),
        context_id=context_id,
        event=event,
        details=dict(details) if details else {},
        context=context,
        interactions=interactions,
        semantic=semantic,
        raw_health=raw_health,
        normalized_health=normalized_health,
        health_impact=health_impact,
    )


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


def escape_key(key: Any) -> str:
    """Make a map key safe to write before ': '.

    Backslash and colon are backslash-escaped, line breaks become \\uXXXX.
    Surrounding whitespace is dropped.
    """
    out = []
    for ch in str(key).strip():
        if ch == KEY_ESCAPE or ch == ":":
            out.append(KEY_ESCAPE + ch)
        elif ch in LINE_BREAKS:
            out.append(f"{KEY_ESCAPE}u{ord(ch):04x}")
        else:
            out.append(ch)
    return "".join(out)


def unescape_key(text: str) -> str:
    out = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == KEY_ESCAPE and i + 1 < len(text):
            nxt = text[i + 1]
            if nxt == "u" and i + 6 <= len(text):
                try:
                    out.append(chr(int(text[i + 2:i + 6], 16)))
                    i += 6
                    continue
                except ValueError:
                    pass
            out.append(nxt)
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def split_field(text: str) -> tuple[str, bool, str]:
    """Split 'key: value' at the first unescaped colon.

    Returns (key, found, value) with the key unescaped and both sides stripped.
    """
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == KEY_ESCAPE:
            i += 2
            continue
        if ch == ":":
            return unescape_key(text[:i].strip()), True, text[i + 1:].strip()
        i += 1
    return text, False, ""


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_timestamp(ts: datetime, fmt: str) -> str:
    """strftime, trimming a trailing %f to milliseconds."""
    text = ts.strftime(fmt)
    if fmt.endswith("%f"):
        text = text[:-3]
    return text


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _single_line(text: str) -> str:
    return " ".join(str(text).splitlines()).strip()


def _is_block(text: str) -> bool:
    # anything a single 'key: value' line would not carry back verbatim
    return (
        text == BLOCK_MARKER
        or text != text.strip()
        or any(ch in LINE_BREAKS for ch in text)
    )


def _write_value(lines: list[str], indent: str, key: Any, value: Any):
    text = format_value(value)
    key = escape_key(key)
    if _is_block(text):
        lines.append(f"{indent}{key}: {BLOCK_MARKER}")
        nested = indent + "  "
        for part in text.split("\n"):
            lines.append(f"{nested}{part}")
    else:
        lines.append(f"{indent}{key}: {text}")


def _write_map(lines: list[str], name: str, data: dict[str, Any]):
    if not data:
        return
    lines.append(f"{FIELD_INDENT}{name}:")
    for key, value in data.items():
        lines.append(f"{NESTED_INDENT}{escape_key(key)}: {_single_line(format_value(value))}")


def _write_list(lines: list[str], name: str, items: list[Any]):
    if not items:
        return
    lines.append(f"{FIELD_INDENT}{name}:")
    for item in items:
        lines.append(f"{NESTED_INDENT}{LIST_MARKER} {_single_line(format_value(item))}")


def format_header(entry: LogEntry, config: LoggingConfig) -> str:
    ts = format_timestamp(entry.timestamp or datetime.now(), config.format.timestamp_format)
    health = entry.normalized_health
    indicator = health_indicator(health, config.health.ranges)
    bar = health_bar(health, config.health.bar_width)
    return (
        f"[{ts}] {entry.level} | {entry.component} | {entry.user} | {entry.context_id} | "
        f"HEALTH: {health}% (raw: {entry.raw_health}, Δ{format_delta(entry.health_impact)}) "
        f"{indicator} {bar}"
    )


def _format_context(lines: list[str], context: SystemContext):
    lines.append(f"{SECTION_INDENT}{CONTEXT_HEADER}")
    lines.append(f"{FIELD_INDENT}user: {_single_line(context.user)}")
    lines.append(f"{FIELD_INDENT}shell: {context.shell.format()}")
    lines.append(f"{FIELD_INDENT}cwd: {_single_line(context.cwd)}")
    _write_map(lines, "environment", context.env_state)
    _write_map(lines, "security", context.security.to_dict())
    _write_map(lines, "resources", context.resources.to_dict())


def _format_interactions(lines: list[str], interactions: Interactions):
    lines.append(f"{SECTION_INDENT}{INTERACTIONS_HEADER}")
    for name in INTERACTIONS_LIST_FIELDS:
        _write_list(lines, name, getattr(interactions, name))
    for name in INTERACTIONS_MAP_FIELDS:
        _write_map(lines, name, getattr(interactions, name))


def _format_semantic(lines: list[str], semantic: SemanticMetadata):
    lines.append(f"{SECTION_INDENT}{SEMANTIC_HEADER}")
    for name in SEMANTIC_SCALAR_FIELDS:
        value = getattr(semantic, name)
        if value:
            lines.append(f"{FIELD_INDENT}{name}: {_single_line(value)}")
    for name in SEMANTIC_MAP_FIELDS:
        _write_map(lines, name, getattr(semantic, name))


def format_entry(entry: LogEntry, config: LoggingConfig | None = None) -> str:
    """Serialize *entry* to its text form, ending with the separator (no trailing newline)."""
    config = config or default_config()
    lines = [format_header(entry, config)]
    lines.append(f"{SECTION_INDENT}{EVENT_HEADER} {_single_line(entry.event)}")

    if entry.details:
        lines.append(f"{SECTION_INDENT}{DETAILS_HEADER}")
        for key, value in entry.details.items():
            _write_value(lines, FIELD_INDENT, key, value)

    if entry.context is not None:
        _format_context(lines, entry.context)

    if entry.interactions is not None:
        _format_interactions(lines, entry.interactions)

    if entry.semantic is not None:
        _format_semantic(lines, entry.semantic)

    lines.append(config.format.entry_separator)
    return "\n".join(lines)

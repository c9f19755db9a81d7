"""Line-oriented parser that rebuilds LogEntry objects from lograil log text.

The parser is a small state machine:
  - a header line starts a new entry (flushing the one in progress),
  - other lines belong to whichever section header was seen last,
  - the separator line flushes and resets.

Records end at a newline only. A bare carriage return or any other line break
belongs to the value it sits in.

It never raises on bad content. Malformed lines become LogParseError records
in the ParseResult while every entry that could be read is still returned.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from lograil.config import LoggingConfig, default_config
from lograil.context import (
    UNKNOWN,
    ResourceMetrics,
    SecurityFileContext,
    ShellContext,
    SystemContext,
)
from lograil.entry import (
    BLOCK_MARKER,
    CONTEXT_HEADER,
    DETAILS_HEADER,
    EVENT_HEADER,
    FIELD_INDENT,
    INTERACTIONS_HEADER,
    INTERACTIONS_LIST_FIELDS,
    INTERACTIONS_MAP_FIELDS,
    LIST_MARKER,
    NESTED_INDENT,
    SEMANTIC_HEADER,
    SEMANTIC_MAP_FIELDS,
    SEMANTIC_SCALAR_FIELDS,
    Interactions,
    LogEntry,
    SemanticMetadata,
    split_field,
)

logger = logging.getLogger(__name__)

HEADER_PATTERN = re.compile(
    r"^\[(?P<timestamp>[^\]]*)\]\s+(?P<level>\S+)"
    r"\s+\|\s+(?P<component>[^|]*?)"
    r"\s+\|\s+(?P<user>[^|]*?)"
    r"\s+\|\s+(?P<context_id>[^|]*?)"
    r"\s+\|\s+HEALTH:\s*(?P<normalized>[+-]?\d+)%"
    r"\s*\(raw:\s*(?P<raw>[+-]?\d+),\s*Δ(?P<delta>[+-]?\d+)\)"
    r"(?P<rest>.*)$"
)

SHELL_PATTERN = re.compile(
    r"^(?P<type>.*) \((?P<interactive>interactive|non-interactive), (?P<login>login|non-login)\)$"
)

_SECTIONS = {
    DETAILS_HEADER: "details",
    CONTEXT_HEADER: "context",
    INTERACTIONS_HEADER: "interactions",
    SEMANTIC_HEADER: "semantic",
}
_NESTED_SECTIONS = ("context", "interactions", "semantic")


class LogParseError(ValueError):
    """A line that could not be attributed to a well-formed entry."""

    def __init__(self, message: str, line_number: int = 0, line: str = ""):
        super().__init__(f"line {line_number}: {message}" if line_number else message)
        self.line_number = line_number
        self.line = line


@dataclass
class ParseResult:
    entries: list[LogEntry] = field(default_factory=list)
    errors: list[LogParseError] = field(default_factory=list)

    @property
    def error(self) -> LogParseError | None:
        """First error encountered, or None when every line parsed."""
        return self.errors[0] if self.errors else None

    @property
    def ok(self) -> bool:
        return not self.errors


def is_header_line(line: str) -> bool:
    return line.startswith("[") and "|" in line


def _split_user(user: str) -> tuple[str, str, int]:
    """'alice@host:4821' → ('alice', 'host', 4821)."""
    rest, _, pid_text = user.rpartition(":")
    name, _, host = rest.partition("@")
    try:
        pid = int(pid_text)
    except ValueError:
        pid = 0
    return name or UNKNOWN, host or UNKNOWN, pid


def _parse_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def _context_from_section(data: dict, user_field: str) -> SystemContext:
    name, host, pid = _split_user(user_field)

    shell = ShellContext()
    match = SHELL_PATTERN.match(data.get("shell", ""))
    if match:
        shell = ShellContext(
            type=match.group("type"),
            interactive=match.group("interactive") == "interactive",
            login=match.group("login") == "login",
        )

    security = data.get("security", {})
    resources = data.get("resources", {})
    return SystemContext(
        user=data.get("user", name),
        host=host,
        pid=pid,
        shell=shell,
        cwd=data.get("cwd", UNKNOWN),
        env_state=dict(data.get("environment", {})),
        security=SecurityFileContext(
            installed=_parse_bool(security.get("installed", "false")),
            valid=_parse_bool(security.get("valid", "false")),
            permissions=security.get("permissions", UNKNOWN),
        ),
        resources=ResourceMetrics(
            load=resources.get("load", UNKNOWN),
            memory=resources.get("memory", UNKNOWN),
            disk=resources.get("disk", UNKNOWN),
        ),
    )


def _semantic_from_section(data: dict) -> SemanticMetadata:
    values = {}
    for name in SEMANTIC_SCALAR_FIELDS:
        value = data.get(name)
        if isinstance(value, str):
            values[name] = value
    for name in SEMANTIC_MAP_FIELDS:
        value = data.get(name)
        if isinstance(value, dict):
            values[name] = dict(value)
    return SemanticMetadata(**values)


def _interactions_from_section(data: dict) -> Interactions:
    values = {}
    for name in INTERACTIONS_LIST_FIELDS:
        value = data.get(name)
        if isinstance(value, list):
            values[name] = list(value)
    for name in INTERACTIONS_MAP_FIELDS:
        value = data.get(name)
        if isinstance(value, dict):
            values[name] = dict(value)
    return Interactions(**values)


class _EntryParser:
    """Holds the state machine for one stream of lines."""

    def __init__(self, config: LoggingConfig):
        self._separator = config.format.entry_separator.strip()
        self._timestamp_format = config.format.timestamp_format
        self.result = ParseResult()
        self._entry: LogEntry | None = None
        self._section: str | None = None
        self._nested: dict | None = None
        self._raw_sections: dict[str, dict] = {}
        self._block_key: str | None = None
        self._block_lines: list[str] = []

    # -- bookkeeping -------------------------------------------------------

    def _error(self, message: str, line_number: int, line: str):
        err = LogParseError(message, line_number, line)
        logger.debug("Parse error: %s", err)
        self.result.errors.append(err)

    def _close_block(self):
        if self._entry is not None and self._block_key is not None:
            self._entry.details[self._block_key] = "\n".join(self._block_lines)
        self._block_key = None
        self._block_lines = []

    def flush(self):
        """Finish the entry in progress, if any."""
        if self._entry is None:
            return
        self._close_block()
        if "context" in self._raw_sections:
            self._entry.context = _context_from_section(self._raw_sections["context"], self._entry.user)
        if "interactions" in self._raw_sections:
            self._entry.interactions = _interactions_from_section(self._raw_sections["interactions"])
        if "semantic" in self._raw_sections:
            self._entry.semantic = _semantic_from_section(self._raw_sections["semantic"])
        self.result.entries.append(self._entry)
        self._entry = None
        self._section = None
        self._nested = None
        self._raw_sections = {}

    # -- line handlers -----------------------------------------------------

    def _start_entry(self, line: str, line_number: int):
        match = HEADER_PATTERN.match(line)
        if not match:
            self._error("malformed entry header", line_number, line)
            return

        timestamp = None
        try:
            timestamp = datetime.strptime(match.group("timestamp").strip(), self._timestamp_format)
        except ValueError:
            self._error("unparseable timestamp", line_number, line)

        self._entry = LogEntry(
            timestamp=timestamp,
            level=match.group("level").strip(),
            component=match.group("component").strip(),
            user=match.group("user").strip(),
            context_id=match.group("context_id").strip(),
            raw_health=int(match.group("raw")),
            normalized_health=int(match.group("normalized")),
            health_impact=int(match.group("delta")),
        )

    def _section_line(self, line: str, stripped: str, line_number: int):
        indent = len(line) - len(line.lstrip(" "))

        if isinstance(self._nested, list) and indent >= len(NESTED_INDENT) and stripped.startswith(LIST_MARKER):
            self._nested.append(stripped[len(LIST_MARKER):].strip())
            return

        key, found, value = split_field(stripped)
        if not found:
            self._error(f"expected 'key: value' in {self._section or 'entry'}", line_number, line)
            return

        if self._section == "details":
            if value == BLOCK_MARKER:
                self._block_key = key
                self._block_lines = []
            else:
                self._entry.details[key] = value
            return

        if self._section in _NESTED_SECTIONS:
            section = self._raw_sections[self._section]
            if indent >= len(NESTED_INDENT) and isinstance(self._nested, dict):
                self._nested[key] = value
            elif value:
                section[key] = value
                self._nested = None
            elif self._section == "interactions" and key in INTERACTIONS_LIST_FIELDS:
                self._nested = section.setdefault(key, [])
            else:
                self._nested = section.setdefault(key, {})
            return

        self._error("line outside any section", line_number, line)

    def feed(self, line: str, line_number: int):
        if line.endswith("\n"):
            line = line[:-1]

        if self._block_key is not None:
            if line.startswith(NESTED_INDENT) or not line.strip():
                self._block_lines.append(line[len(NESTED_INDENT):])
                return
            self._close_block()

        if is_header_line(line):
            self.flush()
            self._start_entry(line, line_number)
            return

        if line.rstrip() == self._separator:
            self.flush()
            return

        stripped = line.strip()
        if self._entry is None or not stripped:
            return

        # section headers sit at the shallowest body indent; deeper lines are fields
        is_section_level = len(line) - len(line.lstrip(" ")) < len(FIELD_INDENT)

        if is_section_level and stripped.startswith(EVENT_HEADER):
            self._entry.event = stripped[len(EVENT_HEADER):].strip()
            self._section = "event"
            return

        if is_section_level and stripped in _SECTIONS:
            self._section = _SECTIONS[stripped]
            self._nested = None
            if self._section in _NESTED_SECTIONS:
                self._raw_sections.setdefault(self._section, {})
            return

        self._section_line(line, stripped, line_number)


def parse_lines(lines: Iterable[str], config: LoggingConfig | None = None) -> ParseResult:
    """Parse an iterable of lines (with or without trailing newlines)."""
    parser = _EntryParser(config or default_config())
    for line_number, line in enumerate(lines, 1):
        parser.feed(line, line_number)
    parser.flush()
    return parser.result


def parse_text(text: str, config: LoggingConfig | None = None) -> ParseResult:
    # records end at "\n" only; other line breaks can sit inside a value
    return parse_lines(text.split("\n"), config)


def parse_log_file(path: str, config: LoggingConfig | None = None) -> ParseResult:
    """Read *path* and rebuild its entries.

    Raises FileNotFoundError/OSError only if the file cannot be opened. A read
    failure part-way through keeps the entries parsed so far and records the
    failure in ParseResult.errors.
    """
    parser = _EntryParser(config or default_config())
    line_number = 0
    with open(path, "r", encoding="utf-8", errors="replace", newline="\n") as f:
        try:
            for line_number, line in enumerate(f, 1):
                parser.feed(line, line_number)
        except OSError as e:
            parser.result.errors.append(LogParseError(f"read failed: {e}", line_number + 1))
    parser.flush()
    return parser.result

"""Logger facade: one instance per component per unit of work.

Components attach directly:

    logger = new_logger("validate")
    logger.declare_health_total(100)
    logger.operation("validate", +5)
    logger.success("Validation passed", +20, {"files_checked": 15})

Each call captures context, updates health, formats one entry and appends it
to <base_dir>/logs/<commands|scripts|libraries|system>/<component>.log.
Nothing in here raises because a log line could not be written.
"""

import logging
import os
import subprocess
import time
import traceback
from typing import Any

from lograil.config import (
    LEVEL_CHECK,
    LEVEL_CONTEXT,
    LEVEL_DEBUG,
    LEVEL_ERROR,
    LEVEL_FAILURE,
    LEVEL_OPERATION,
    LEVEL_SUCCESS,
    LoggingConfig,
    MessagesConfig,
    RoutingConfig,
    load_config,
)
from lograil.context import SystemContext, capture_context, capture_identity
from lograil.entry import Interactions, SemanticMetadata, build_entry, format_entry
from lograil.health import HealthScorer
from lograil.writer import LogFileWriter

logger = logging.getLogger(__name__)

COMMANDS_SUBDIR = "commands"
SCRIPTS_SUBDIR = "scripts"
LIBRARIES_SUBDIR = "libraries"
SYSTEM_SUBDIR = "system"

_DEFAULT_MESSAGES = MessagesConfig()


def determine_log_subdirectory(component: str, routing: RoutingConfig | None = None) -> str:
    """Exact-match routing; anything unlisted lands in 'system'."""
    routing = routing or RoutingConfig()
    if component in routing.commands:
        return COMMANDS_SUBDIR
    if component in routing.scripts:
        return SCRIPTS_SUBDIR
    if component in routing.libraries:
        return LIBRARIES_SUBDIR
    return SYSTEM_SUBDIR


def build_log_path(component: str, config: LoggingConfig, base_dir: str | None = None) -> str:
    base = os.path.expanduser(base_dir) if base_dir else config.base_dir
    return os.path.join(
        base,
        config.paths.logs_subdir,
        determine_log_subdirectory(component, config.routing),
        component + config.files.log_file_extension,
    )


def _render(template: str, fallback: str, **values) -> str:
    """Format a configured template, falling back to the built-in one if it is broken."""
    try:
        return template.format(**values)
    except (KeyError, IndexError, ValueError):
        return fallback.format(**values)


def make_context_id(component: str, pid: int, config: LoggingConfig) -> str:
    return _render(
        config.files.context_id_format,
        "{component}-{pid}-{timestamp}",
        component=component,
        pid=pid,
        timestamp=time.time_ns(),
    )


class Logger:
    def __init__(self, component: str, config: LoggingConfig | None = None, base_dir: str | None = None):
        self._config = config or load_config()
        self._component = component
        self._log_file = build_log_path(component, self._config, base_dir)
        self._identity = capture_identity(self._config.context_capture.unknown_value)
        self._context_id = make_context_id(component, self._identity.pid, self._config)
        self._health = HealthScorer()
        self._writer = LogFileWriter(
            self._log_file,
            rotation=self._config.rotation,
            files=self._config.files,
            fmt=self._config.format,
        )

        try:
            os.makedirs(os.path.dirname(self._log_file), mode=self._config.format.log_dir_permissions, exist_ok=True)
        except OSError as e:
            # surfaces as a write warning on the first entry
            logger.debug("Cannot create log directory for %s: %s", self._log_file, e)

    # -- identity and health ----------------------------------------------

    @property
    def component(self) -> str:
        return self._component

    @property
    def context_id(self) -> str:
        return self._context_id

    @property
    def log_file(self) -> str:
        return self._log_file

    @property
    def config(self) -> LoggingConfig:
        return self._config

    @property
    def session_health(self) -> int:
        return self._health.raw

    @property
    def total_possible_health(self) -> int:
        return self._health.total

    @property
    def normalized_health(self) -> int:
        return self._health.normalized

    def get_health(self) -> int:
        """Current normalized health (-100..+100)."""
        return self._health.normalized

    def declare_health_total(self, total: int):
        """Set the denominator for normalization; applies to subsequent entries."""
        self._health.declare_total(total)

    def capture_context(self) -> SystemContext:
        return capture_context(self._identity, self._config.context_capture)

    # -- core path ---------------------------------------------------------

    def _log_entry(
        self,
        level: str,
        event: str,
        health_impact: int,
        details: dict[str, Any] | None,
        semantic: SemanticMetadata | None = None,
        interactions: Interactions | None = None,
    ):
        self._health.update(health_impact)
        context = self.capture_context() if self._config.full_context_for(level) else None
        entry = build_entry(
            level,
            event,
            details,
            component=self._component,
            identity=self._identity,
            context_id=self._context_id,
            raw_health=self._health.raw,
            normalized_health=self._health.normalized,
            health_impact=health_impact,
            context=context,
            interactions=interactions,
            semantic=semantic,
        )
        self._writer.write(format_entry(entry, self._config))

    def _message(self, name: str, **values) -> str:
        return _render(getattr(self._config.messages, name), getattr(_DEFAULT_MESSAGES, name), **values)

    def _full_command(self, command: str, args) -> str:
        if not args:
            return command
        return self._message("cmd_full_format", command=command, args=" ".join(args))

    # -- leveled API -------------------------------------------------------

    def operation(self, command: str, health_impact: int = 0, *args: str):
        """Record the start of an operation."""
        self._log_entry(
            LEVEL_OPERATION,
            self._message("event_op_start", command=command),
            health_impact,
            {"command": self._full_command(command, args)},
        )

    def success(self, event: str, health_impact: int = 0, details: dict[str, Any] | None = None):
        self._log_entry(LEVEL_SUCCESS, event, health_impact, details)

    def failure(self, event: str, reason: str, health_impact: int = 0, details: dict[str, Any] | None = None):
        """Record an expected failure; *reason* is added to the details."""
        details = dict(details or {})
        details["reason"] = reason
        self._log_entry(LEVEL_FAILURE, event, health_impact, details)

    def error(self, event: str, err: BaseException | str, health_impact: int = 0):
        """Record an unexpected error together with a stack trace."""
        limit = self._config.behavior.stack_limit
        if isinstance(err, BaseException) and err.__traceback__ is not None:
            trace = "".join(traceback.format_exception(type(err), err, err.__traceback__, limit=limit))
        else:
            # drop this frame so the trace ends at the caller
            trace = "".join(traceback.format_stack(limit=limit + 1)[:-1])
        details = {"error": str(err), "stack_trace": trace.rstrip("\n")}
        if isinstance(err, BaseException):
            details["error_type"] = type(err).__name__
        self._log_entry(LEVEL_ERROR, event, health_impact, details)

    def check(self, what: str, result: bool, health_impact: int = 0, details: dict[str, Any] | None = None):
        details = dict(details or {})
        details["result"] = result
        self._log_entry(LEVEL_CHECK, self._message("event_check_msg", what=what), health_impact, details)

    def snapshot_state(self, label: str, health_impact: int = 0, interactions: Interactions | None = None):
        self._log_entry(
            LEVEL_CONTEXT,
            self._message("event_snapshot", label=label),
            health_impact,
            {},
            interactions=interactions,
        )

    def debug(
        self,
        event: str,
        health_impact: int = 0,
        internal_state: dict[str, Any] | None = None,
        interactions: Interactions | None = None,
    ):
        """Record internal state; *interactions* notes concurrent work and dependencies."""
        self._log_entry(LEVEL_DEBUG, event, health_impact, internal_state, interactions=interactions)

    # -- metadata-carrying variants ---------------------------------------

    def success_with_metadata(
        self,
        event: str,
        health_impact: int,
        details: dict[str, Any] | None,
        semantic: SemanticMetadata,
    ):
        self._log_entry(LEVEL_SUCCESS, event, health_impact, details, semantic)

    def failure_with_metadata(
        self,
        event: str,
        reason: str,
        health_impact: int,
        details: dict[str, Any] | None,
        semantic: SemanticMetadata,
    ):
        details = dict(details or {})
        details["reason"] = reason
        self._log_entry(LEVEL_FAILURE, event, health_impact, details, semantic)

    def check_with_metadata(
        self,
        what: str,
        result: bool,
        health_impact: int,
        details: dict[str, Any] | None,
        semantic: SemanticMetadata,
    ):
        details = dict(details or {})
        details["result"] = result
        self._log_entry(
            LEVEL_CHECK, self._message("event_check_msg", what=what), health_impact, details, semantic
        )

    # -- external commands -------------------------------------------------

    def log_command(
        self,
        command: str,
        args: list[str] | None = None,
        check: bool = False,
        cwd: str | None = None,
    ) -> subprocess.CompletedProcess:
        """Run *command*, logging its start and its outcome.

        Returns the CompletedProcess. A command that cannot be launched is
        logged as a failure and its OSError re-raised; with check=True a
        non-zero exit raises CalledProcessError after the failure is logged.
        """
        args = list(args or [])
        impacts = self._config.health_impacts
        cmd_string = self._full_command(command, args)

        self.operation(command, impacts.cmd_operation_impact, *args)

        start = time.monotonic()
        try:
            proc = subprocess.run(
                [command, *args],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                cwd=cwd,
            )
        except OSError as e:
            self.failure(
                self._message("event_cmd_failed", command=command),
                str(e),
                impacts.cmd_failure_impact,
                {
                    "command": cmd_string,
                    "exit_code": -1,
                    "duration": self._duration(start),
                    "output": "",
                },
            )
            raise

        details = {
            "command": cmd_string,
            "exit_code": proc.returncode,
            "duration": self._duration(start),
            "output": proc.stdout or "",
        }
        if proc.returncode == 0:
            self.success(self._message("event_cmd_success", command=command), impacts.cmd_success_impact, details)
            return proc

        self.failure(
            self._message("event_cmd_failed", command=command),
            self._message("failure_reason", exit_code=proc.returncode),
            impacts.cmd_failure_impact,
            details,
        )
        if check:
            raise subprocess.CalledProcessError(proc.returncode, [command, *args], output=proc.stdout)
        return proc

    def _duration(self, start: float) -> str:
        ms = int((time.monotonic() - start) * 1000)
        return self._message("duration_format", ms=ms)


def new_logger(component: str, config: LoggingConfig | None = None, base_dir: str | None = None) -> Logger:
    """Create a Logger bound to *component*, routed by the config's lists."""
    return Logger(component, config=config, base_dir=base_dir)

"""Configuration: frozen dataclasses loaded once from an optional YAML file.

Every field has a hardcoded default. A value from the YAML file only replaces
the default when it is present and non-empty, so a partial or half-broken file
still yields a complete configuration.
"""

import logging
import os
import threading
from dataclasses import dataclass, field, fields

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LOGRAIL_CONFIG"
BASE_DIR_ENV_VAR = "LOGRAIL_BASE_DIR"
DEFAULT_CONFIG_PATH = os.path.join("~", ".lograil", "config", "logging.yaml")

LEVEL_OPERATION = "OPERATION"
LEVEL_SUCCESS = "SUCCESS"
LEVEL_FAILURE = "FAILURE"
LEVEL_ERROR = "ERROR"
LEVEL_CHECK = "CHECK"
LEVEL_CONTEXT = "CONTEXT"
LEVEL_DEBUG = "DEBUG"

LEVELS = (
    LEVEL_OPERATION,
    LEVEL_SUCCESS,
    LEVEL_FAILURE,
    LEVEL_ERROR,
    LEVEL_CHECK,
    LEVEL_CONTEXT,
    LEVEL_DEBUG,
)


@dataclass(frozen=True)
class HealthRange:
    threshold: int
    indicator: str
    description: str = ""


DEFAULT_HEALTH_RANGES = (
    HealthRange(90, "💚", "Excellent - all systems healthy"),
    HealthRange(80, "💙", "Very Good - minor issues only"),
    HealthRange(70, "💛", "Good - some concerns"),
    HealthRange(60, "🧡", "Above Average - noticeable issues"),
    HealthRange(50, "❤️", "Average - mixed results"),
    HealthRange(40, "🤍", "Below Average - attention needed"),
    HealthRange(30, "💔", "Fair - significant problems"),
    HealthRange(20, "🩹", "Poor - major issues"),
    HealthRange(10, "⚠️", "Warning - critical attention needed"),
    HealthRange(1, "☠️", "Critical - near failure"),
    HealthRange(0, "⚫", "Neutral - balanced state"),
    HealthRange(-9, "🔴", "Slight Negative - minor damage"),
    HealthRange(-19, "🟠", "Negative - noticeable degradation"),
    HealthRange(-29, "🟡", "Declining - system weakening"),
    HealthRange(-39, "🟢", "Degraded - significant damage"),
    HealthRange(-49, "🔵", "Damaged - major problems"),
    HealthRange(-59, "🟣", "Severe - critical damage"),
    HealthRange(-69, "🟤", "Critical - near failure"),
    HealthRange(-79, "⚫", "Failing - barely functional"),
    HealthRange(-89, "⬛", "Near Death - almost gone"),
    HealthRange(-100, "💀", "Dead - complete failure"),
)


@dataclass(frozen=True)
class PathsConfig:
    base_dir: str = os.path.join("~", ".lograil")
    logs_subdir: str = "logs"


@dataclass(frozen=True)
class FilesConfig:
    log_file_extension: str = ".log"
    rotated_log_format: str = "{path}.{index}"
    context_id_format: str = "{component}-{pid}-{timestamp}"


@dataclass(frozen=True)
class FormatConfig:
    timestamp_format: str = "%Y-%m-%d %H:%M:%S.%f"
    entry_separator: str = "---"
    log_file_permissions: int = 0o644
    log_dir_permissions: int = 0o755


@dataclass(frozen=True)
class ContextCaptureConfig:
    security_file: str = "/etc/sudoers.d/90-lograil-safe-operations"
    security_valid_perms: int = 0o440
    framework_env_prefix: str = "LOGRAIL_"
    relevant_env_vars: tuple[str, ...] = (
        "DEBIAN_FRONTEND",
        "NEEDRESTART_MODE",
        "NEEDRESTART_SUSPEND",
        "PIP_NO_INPUT",
        "NPM_CONFIG_YES",
        "GIT_EDITOR",
        "EDITOR",
        "VISUAL",
    )
    unknown_value: str = "unknown"


@dataclass(frozen=True)
class BehaviorConfig:
    log_level_full_context: dict[str, bool] = field(default_factory=lambda: {
        LEVEL_OPERATION: True,
        LEVEL_SUCCESS: False,
        LEVEL_FAILURE: True,
        LEVEL_ERROR: True,
        LEVEL_CHECK: False,
        LEVEL_CONTEXT: True,
        LEVEL_DEBUG: True,
    })
    stack_limit: int = 20


@dataclass(frozen=True)
class MessagesConfig:
    event_op_start: str = "Starting operation: {command}"
    event_check_msg: str = "Checking: {what}"
    event_snapshot: str = "System state snapshot: {label}"
    event_cmd_failed: str = "Command failed: {command}"
    event_cmd_success: str = "Command completed: {command}"
    cmd_full_format: str = "{command} {args}"
    failure_reason: str = "exit code: {exit_code}"
    duration_format: str = "{ms}ms"


@dataclass(frozen=True)
class HealthImpactsConfig:
    cmd_operation_impact: int = 0
    cmd_success_impact: int = 10
    cmd_failure_impact: int = -10


@dataclass(frozen=True)
class RotationConfig:
    enabled: bool = True
    max_size_mb: int = 10
    max_size_bytes: int | None = None
    max_files_per_component: int = 5
    check_every: int = 1

    @property
    def threshold_bytes(self) -> int:
        # max_size_bytes takes precedence over max_size_mb
        if self.max_size_bytes is not None:
            return self.max_size_bytes
        return self.max_size_mb * 1024 * 1024


@dataclass(frozen=True)
class RoutingConfig:
    commands: tuple[str, ...] = ("validate", "test", "status", "diagnose", "debugger")
    scripts: tuple[str, ...] = ("build",)
    libraries: tuple[str, ...] = (
        "operations",
        "sudoers",
        "environment",
        "display",
        "logging",
        "debugging",
        "config",
    )


@dataclass(frozen=True)
class HealthConfig:
    bar_width: int = 20
    ranges: tuple[HealthRange, ...] = DEFAULT_HEALTH_RANGES


@dataclass(frozen=True)
class LoggingConfig:
    paths: PathsConfig = field(default_factory=PathsConfig)
    files: FilesConfig = field(default_factory=FilesConfig)
    format: FormatConfig = field(default_factory=FormatConfig)
    context_capture: ContextCaptureConfig = field(default_factory=ContextCaptureConfig)
    behavior: BehaviorConfig = field(default_factory=BehaviorConfig)
    messages: MessagesConfig = field(default_factory=MessagesConfig)
    health_impacts: HealthImpactsConfig = field(default_factory=HealthImpactsConfig)
    rotation: RotationConfig = field(default_factory=RotationConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    health: HealthConfig = field(default_factory=HealthConfig)

    @property
    def base_dir(self) -> str:
        return os.path.expanduser(self.paths.base_dir)

    def full_context_for(self, level: str) -> bool:
        return bool(self.behavior.log_level_full_context.get(level, False))


# ---------------------------------------------------------------------------
# Section builders
# ---------------------------------------------------------------------------


def _is_absent(value) -> bool:
    return value is None or (isinstance(value, (str, list, tuple, dict)) and not value)


def _coerce(value, default):
    """Convert a YAML value to the type of *default*. Raises ValueError/TypeError."""
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
        raise TypeError(f"expected bool, got {type(value).__name__}")
    if isinstance(default, int):
        if isinstance(value, bool):
            raise TypeError("expected int, got bool")
        if isinstance(value, str):
            # permissions are usually written as octal strings ("0440")
            return int(value, 8) if value.startswith("0") and len(value) > 1 else int(value)
        return int(value)
    if isinstance(default, str):
        if isinstance(value, (dict, list)):
            raise TypeError(f"expected str, got {type(value).__name__}")
        return str(value)
    if isinstance(default, tuple):
        if not isinstance(value, (list, tuple)):
            raise TypeError(f"expected list, got {type(value).__name__}")
        return tuple(str(v) for v in value)
    if isinstance(default, dict):
        if not isinstance(value, dict):
            raise TypeError(f"expected mapping, got {type(value).__name__}")
        merged = dict(default)
        for k, v in value.items():
            try:
                merged[str(k).upper()] = _coerce(v, False)
            except (TypeError, ValueError) as e:
                logger.debug("Ignoring config value for %s: %s", k, e)
        return merged
    if default is None:
        return int(value)
    return value


def _build_section(cls, data):
    """Instantiate *cls* from a YAML mapping, falling back per field."""
    defaults = cls()
    if not isinstance(data, dict):
        return defaults

    values = {}
    for f in fields(cls):
        default = getattr(defaults, f.name)
        raw = data.get(f.name)
        if _is_absent(raw):
            values[f.name] = default
            continue
        try:
            values[f.name] = _coerce(raw, default)
        except (TypeError, ValueError) as e:
            logger.debug("Ignoring %s.%s (%s), using default", cls.__name__, f.name, e)
            values[f.name] = default
    return cls(**values)


def _build_health(data) -> HealthConfig:
    defaults = HealthConfig()
    if not isinstance(data, dict):
        return defaults

    bar_width = defaults.bar_width
    if not _is_absent(data.get("bar_width")):
        try:
            bar_width = max(1, int(data["bar_width"]))
        except (TypeError, ValueError):
            pass

    ranges = defaults.ranges
    raw_ranges = data.get("ranges")
    if isinstance(raw_ranges, list) and raw_ranges:
        try:
            parsed = tuple(
                HealthRange(
                    threshold=int(r["threshold"]),
                    indicator=str(r.get("indicator") or r.get("emoji") or "❓"),
                    description=str(r.get("description", "")),
                )
                for r in raw_ranges
            )
            # first-match evaluation requires descending thresholds
            ranges = tuple(sorted(parsed, key=lambda r: r.threshold, reverse=True))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.debug("Ignoring health.ranges (%s), using defaults", e)

    return HealthConfig(bar_width=bar_width, ranges=ranges)


def config_from_dict(data: dict) -> LoggingConfig:
    """Build a LoggingConfig from an already-parsed mapping."""
    data = data if isinstance(data, dict) else {}
    paths = _build_section(PathsConfig, data.get("paths"))
    env_base = os.environ.get(BASE_DIR_ENV_VAR)
    if env_base:
        paths = PathsConfig(base_dir=env_base, logs_subdir=paths.logs_subdir)

    return LoggingConfig(
        paths=paths,
        files=_build_section(FilesConfig, data.get("files")),
        format=_build_section(FormatConfig, data.get("format")),
        context_capture=_build_section(ContextCaptureConfig, data.get("context_capture")),
        behavior=_build_section(BehaviorConfig, data.get("behavior")),
        messages=_build_section(MessagesConfig, data.get("messages")),
        health_impacts=_build_section(HealthImpactsConfig, data.get("health_impacts")),
        rotation=_build_section(RotationConfig, data.get("rotation")),
        routing=_build_section(RoutingConfig, data.get("routing")),
        health=_build_health(data.get("health")),
    )


def default_config() -> LoggingConfig:
    """The hardcoded configuration used when no file can be loaded."""
    return config_from_dict({})


def resolve_config_path() -> str:
    return os.path.expanduser(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))


def read_config_file(path: str | None = None) -> tuple[LoggingConfig, bool]:
    """Load config from *path*. Returns (config, loaded).

    Never raises: a missing, unreadable or malformed file yields the defaults
    with loaded=False.
    """
    try:
        path = path or resolve_config_path()
    except (KeyError, RuntimeError) as e:
        # expanduser can fail when no home directory is resolvable
        logger.debug("Cannot resolve config path (%s), using defaults", e)
        return default_config(), False

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.debug("Config file %s not found, using defaults", path)
        return default_config(), False
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.debug("Config file %s unusable (%s), using defaults", path, e)
        return default_config(), False

    if not isinstance(data, dict):
        logger.debug("Config file %s is not a mapping, using defaults", path)
        return default_config(), False

    logger.debug("Loaded config from %s", path)
    return config_from_dict(data), True


# ---------------------------------------------------------------------------
# Process-wide accessor
# ---------------------------------------------------------------------------

_lock = threading.Lock()
_config: LoggingConfig | None = None
_loaded = False


def load_config() -> LoggingConfig:
    """Return the process config, reading the file exactly once."""
    global _config, _loaded
    cfg = _config
    if cfg is not None:
        return cfg
    with _lock:
        if _config is None:
            loaded_cfg, loaded = read_config_file()
            _loaded = loaded
            _config = loaded_cfg
        return _config


def config_loaded() -> bool:
    """True when the process config came from the YAML file rather than defaults."""
    load_config()
    return _loaded


def reset_config():
    """Drop the cached process config so the next load_config() re-reads the file."""
    global _config, _loaded
    with _lock:
        _config = None
        _loaded = False

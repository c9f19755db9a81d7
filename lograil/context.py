"""System context capture. Every fact degrades to a sentinel on its own.

Identity facts (user, host, pid) are resolved once per Logger via
capture_identity(); everything else is re-read on each capture because it can
change while the process runs.
"""

import getpass
import os
import socket
import stat
import sys
from dataclasses import dataclass, field

import psutil

from lograil.config import ContextCaptureConfig

UNKNOWN = "unknown"

LOAD_AVG_FORMAT = "{:.2f}, {:.2f}, {:.2f}"
MEMORY_USAGE_FORMAT = "{used}MB / {total}MB"
DISK_USAGE_FORMAT = "{used} / {total} ({percent})"


@dataclass(frozen=True)
class Identity:
    user: str
    host: str
    pid: int

    def format(self) -> str:
        return f"{self.user}@{self.host}:{self.pid}"


@dataclass(frozen=True)
class ShellContext:
    type: str = UNKNOWN
    interactive: bool = False
    login: bool = False

    def format(self) -> str:
        interactive = "interactive" if self.interactive else "non-interactive"
        login = "login" if self.login else "non-login"
        return f"{self.type} ({interactive}, {login})"


@dataclass(frozen=True)
class SecurityFileContext:
    installed: bool = False
    valid: bool = False
    permissions: str = UNKNOWN

    def to_dict(self) -> dict[str, str]:
        return {
            "installed": "true" if self.installed else "false",
            "valid": "true" if self.valid else "false",
            "permissions": self.permissions,
        }


@dataclass(frozen=True)
class ResourceMetrics:
    load: str = UNKNOWN
    memory: str = UNKNOWN
    disk: str = UNKNOWN

    def to_dict(self) -> dict[str, str]:
        return {"load": self.load, "memory": self.memory, "disk": self.disk}


@dataclass(frozen=True)
class SystemContext:
    user: str = UNKNOWN
    host: str = UNKNOWN
    pid: int = 0
    shell: ShellContext = field(default_factory=ShellContext)
    cwd: str = UNKNOWN
    env_state: dict[str, str] = field(default_factory=dict)
    security: SecurityFileContext = field(default_factory=SecurityFileContext)
    resources: ResourceMetrics = field(default_factory=ResourceMetrics)


# ---------------------------------------------------------------------------
# Identity (captured once per logger)
# ---------------------------------------------------------------------------


def get_current_user(unknown: str = UNKNOWN) -> str:
    try:
        return getpass.getuser() or unknown
    except (OSError, KeyError, ImportError):
        return os.environ.get("USER") or unknown


def get_hostname(unknown: str = UNKNOWN) -> str:
    try:
        return socket.gethostname() or unknown
    except OSError:
        return unknown


def capture_identity(unknown: str = UNKNOWN) -> Identity:
    return Identity(user=get_current_user(unknown), host=get_hostname(unknown), pid=os.getpid())


# ---------------------------------------------------------------------------
# Dynamic facts
# ---------------------------------------------------------------------------


def get_cwd(unknown: str = UNKNOWN) -> str:
    try:
        return os.getcwd()
    except OSError:
        return unknown


def get_shell_type(unknown: str = UNKNOWN) -> str:
    shell = os.environ.get("SHELL", "")
    return os.path.basename(shell.rstrip("/")) or unknown


def is_interactive() -> bool:
    try:
        return sys.stdin is not None and sys.stdin.isatty()
    except (ValueError, AttributeError, OSError):
        # closed or replaced stdin
        return False


def is_login_shell() -> bool:
    return os.environ.get("SHLVL") == "1"


def capture_shell_context(unknown: str = UNKNOWN) -> ShellContext:
    return ShellContext(
        type=get_shell_type(unknown),
        interactive=is_interactive(),
        login=is_login_shell(),
    )


def capture_env_state(relevant_vars, framework_prefix: str) -> dict[str, str]:
    """Automation-related variables plus every variable carrying the framework prefix."""
    env = {}
    for name in relevant_vars:
        value = os.environ.get(name)
        if value:
            env[name] = value
    if framework_prefix:
        for name in sorted(os.environ):
            if name.startswith(framework_prefix):
                env[name] = os.environ[name]
    return env


def capture_security_file(path: str, required_perms: int, unknown: str = UNKNOWN) -> SecurityFileContext:
    """Installed when the file exists; valid only when its mode is exactly *required_perms*."""
    try:
        info = os.stat(path)
    except OSError:
        return SecurityFileContext(installed=False, valid=False, permissions=unknown)

    perms = stat.S_IMODE(info.st_mode)
    return SecurityFileContext(
        installed=True,
        valid=perms == required_perms,
        permissions=f"{perms:04o}",
    )


def _human_size(size: float) -> str:
    for unit in ("B", "K", "M", "G", "T"):
        if size < 1024 or unit == "T":
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}T"


def capture_load_avg(unknown: str = UNKNOWN) -> str:
    try:
        one, five, fifteen = psutil.getloadavg()
    except (OSError, AttributeError, psutil.Error):
        return unknown
    return LOAD_AVG_FORMAT.format(one, five, fifteen)


def capture_memory_usage(unknown: str = UNKNOWN) -> str:
    try:
        mem = psutil.virtual_memory()
    except (OSError, psutil.Error):
        return unknown
    if not mem.total:
        return unknown
    used = mem.total - mem.available
    return MEMORY_USAGE_FORMAT.format(used=used // (1024 * 1024), total=mem.total // (1024 * 1024))


def capture_disk_usage(path: str, unknown: str = UNKNOWN) -> str:
    if path == unknown:
        return unknown
    try:
        usage = psutil.disk_usage(path)
    except (OSError, psutil.Error):
        return unknown
    return DISK_USAGE_FORMAT.format(
        used=_human_size(usage.used),
        total=_human_size(usage.total),
        percent=f"{usage.percent:.0f}%",
    )


def capture_resource_metrics(cwd: str, unknown: str = UNKNOWN) -> ResourceMetrics:
    return ResourceMetrics(
        load=capture_load_avg(unknown),
        memory=capture_memory_usage(unknown),
        disk=capture_disk_usage(cwd, unknown),
    )


def capture_context(identity: Identity, settings: ContextCaptureConfig | None = None) -> SystemContext:
    """Compose a full snapshot; no single failing fact stops the others."""
    settings = settings or ContextCaptureConfig()
    unknown = settings.unknown_value
    cwd = get_cwd(unknown)
    return SystemContext(
        user=identity.user,
        host=identity.host,
        pid=identity.pid,
        shell=capture_shell_context(unknown),
        cwd=cwd,
        env_state=capture_env_state(settings.relevant_env_vars, settings.framework_env_prefix),
        security=capture_security_file(settings.security_file, settings.security_valid_perms, unknown),
        resources=capture_resource_metrics(cwd, unknown),
    )

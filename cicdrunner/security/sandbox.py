"""A restricted execution environment for command-line tools."""

from __future__ import annotations

import os
import posixpath
import re
import shutil
import signal
import subprocess
import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from functools import lru_cache

try:
    import resource
except ImportError:  # pragma: no cover - non-Unix systems
    resource = None  # type: ignore[assignment]

MAX_NAME_LENGTH = 64
"""Maximum length of a sandbox name."""

MAX_MEMORY_BYTES = 2 * 1024 * 1024 * 1024
"""Default address-space limit for sandboxed processes."""

DEFAULT_TIMEOUT = 600.0
"""Default execution timeout in seconds."""

MAX_PROCESSES = 100
"""Default maximum number of processes."""

MAX_FILES = 1024
"""Default maximum number of open file descriptors."""

ALLOWED_TOOLS = frozenset(
    {"git", "grep", "sed", "awk", "cat", "head", "tail", "wc", "ls", "jq"}
)

DENIED_PATTERNS = (
    "/etc/passwd",
    "/etc/shadow",
    "/etc/ssh",
    "~/.ssh",
    "*/.git/config",
)

SAFE_ENV_VARS = ("PATH", "HOME", "USER", "LANG", "LC_ALL", "TERM", "TZ")

SAFE_PATH_PREFIXES = ("/usr/bin", "/bin", "/usr/local/bin", "/opt/homebrew/bin")

_DANGEROUS_CHARS = (
    "|", "&", ";", "$", "(", ")", "`", "\\", ">", "<",
    "!",
    "*", "?", "[", "]",
    "{", "}",
    "~",
    "#",
    "%",
    "'", '"',
    "\n", "\r", "\t", "\f", "\v",
    *(chr(code) for code in range(0x00, 0x09)),
    *(chr(code) for code in range(0x0E, 0x20)),
)

_SIGNAL_NAMES = {
    signal.SIGKILL if hasattr(signal, "SIGKILL") else 9: "killed",
    signal.SIGTERM: "terminated",
    signal.SIGINT: "interrupt",
}


class SandboxError(RuntimeError):
    """Raised when a command or path is refused or a command cannot start."""


@dataclass
class SandboxConfig:
    """Sandbox configuration."""

    root_dir: str = ""
    work_dir: str = ""
    read_only_paths: list[str] = field(default_factory=list)
    write_allowed_paths: list[str] = field(default_factory=list)
    allow_network: bool = False
    allowed_domains: list[str] = field(default_factory=list)
    timeout: float = 0.0
    enable_seccomp: bool = False
    enable_landlock: bool = False


@dataclass
class ResourceLimits:
    """Resource constraints applied to sandboxed processes."""

    max_memory: int = MAX_MEMORY_BYTES
    max_cpu: float = 1.0
    max_wall_time: float = DEFAULT_TIMEOUT
    max_processes: int = MAX_PROCESSES
    max_files: int = MAX_FILES


@dataclass
class NetworkPolicy:
    """Network access rules."""

    allow_outbound: bool = False
    allow_inbound: bool = False
    allowed_hosts: list[str] = field(default_factory=list)
    blocked_hosts: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Command:
    """A command line with its working directory, environment and limits."""

    args: tuple[str, ...]
    cwd: str | None = None
    env: dict[str, str] | None = None
    limits: ResourceLimits | None = None


@dataclass
class RunResult:
    """The outcome of running a command in the sandbox."""

    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: timedelta = timedelta(0)
    exit_code: int = 0
    success: bool = False
    error: str | None = None
    output: str = ""

    def is_timeout(self) -> bool:
        """True if the process was killed, as happens on timeout."""
        return self.error == "signal: killed"

    def is_success(self) -> bool:
        return self.success and self.exit_code == 0

    def is_permission_denied(self) -> bool:
        if self.error is None:
            return False
        return "permission denied" in self.error or "access denied" in self.error


def default_config() -> SandboxConfig:
    """Return a safe default configuration rooted at the current directory."""
    wd = os.getcwd()
    return SandboxConfig(
        root_dir=os.path.join(wd, ".sandbox"),
        work_dir=wd,
        read_only_paths=[wd],
        allow_network=False,
        timeout=DEFAULT_TIMEOUT,
        enable_seccomp=True,
        enable_landlock=False,
    )


def default_resource_limits() -> ResourceLimits:
    """Return safe default resource limits."""
    return ResourceLimits()


@lru_cache(maxsize=128)
def _glob_regex(pattern: str) -> re.Pattern[str] | None:
    parts: list[str] = []
    i = 0
    size = len(pattern)
    while i < size:
        char = pattern[i]
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "\\":
            if i + 1 >= size:
                return None
            parts.append(re.escape(pattern[i + 1]))
            i += 1
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                return None
            body = pattern[i + 1:end]
            negate = body.startswith("^")
            if negate:
                body = body[1:]
            if not body:
                return None
            escaped = "".join("\\" + c if c in "\\]^[" else c for c in body)
            parts.append(f"[^/{escaped}]" if negate else f"[{escaped}]")
            i = end
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("".join(parts), re.DOTALL)


def _glob_match(pattern: str, name: str) -> bool:
    regex = _glob_regex(pattern)
    return regex is not None and regex.fullmatch(name) is not None


def _clean(path: str) -> str:
    return posixpath.normpath(path) if path else "."


def _limit_setter(limits: ResourceLimits) -> Callable[[], None] | None:
    """Build a best-effort function applying limits in the child process."""
    if resource is None:
        return None
    on_linux = sys.platform.startswith("linux")
    on_darwin = sys.platform == "darwin"
    settings: list[tuple[int, int]] = []
    if on_linux and limits.max_memory > 0:
        settings.append((resource.RLIMIT_AS, limits.max_memory))
    if on_linux and limits.max_wall_time > 0:
        settings.append((resource.RLIMIT_CPU, int(limits.max_wall_time)))
    if on_linux and limits.max_processes > 0:
        settings.append((resource.RLIMIT_NPROC, limits.max_processes))
    if (on_linux or on_darwin) and limits.max_files > 0:
        settings.append((resource.RLIMIT_NOFILE, limits.max_files))
    if not settings:
        return None

    def apply() -> None:
        for kind, value in settings:
            try:
                resource.setrlimit(kind, (value, value))
            except (ValueError, OSError):
                pass

    return apply


def _describe_exit(returncode: int) -> tuple[int, str]:
    if returncode < 0:
        number = -returncode
        name = _SIGNAL_NAMES.get(number)
        if name is None:
            try:
                name = signal.Signals(number).name.lower()
            except ValueError:
                name = f"signal {number}"
        return -1, f"signal: {name}"
    return returncode, f"exit status {returncode}"


class Sandbox:
    """Runs commands with a restricted environment and resource limits."""

    def __init__(self, config: SandboxConfig | None = None) -> None:
        if config is None:
            config = default_config()
        self.config = config
        self.allowed_paths = list(config.read_only_paths)
        self.denied_patterns = list(DENIED_PATTERNS)
        self.resource_limits: ResourceLimits | None = default_resource_limits()
        self.network_policy = NetworkPolicy(
            allow_outbound=config.allow_network,
            allowed_hosts=list(config.allowed_domains),
        )
        self._lock = threading.Lock()

    def run(self, command: Command) -> RunResult:
        """Run a command under the sandbox's timeout and limits."""
        with self._lock:
            command = self.prepare_command(command)

        program = command.args[0]
        if os.sep not in program and (os.altsep is None or os.altsep not in program):
            program = shutil.which(program) or program
        preexec = _limit_setter(command.limits) if command.limits is not None else None
        timeout = self.config.timeout if self.config.timeout > 0 else None

        try:
            process = subprocess.Popen(
                [program, *command.args[1:]],
                cwd=command.cwd or None,
                env=command.env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                preexec_fn=preexec,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise SandboxError(f"failed to start command: {exc}") from exc

        result = RunResult(start_time=datetime.now())
        try:
            output, _ = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            output, _ = process.communicate()
        result.end_time = datetime.now()
        result.duration = result.end_time - result.start_time
        result.output = output or ""

        if process.returncode == 0:
            result.exit_code = 0
            result.success = True
        else:
            result.exit_code, result.error = _describe_exit(process.returncode)
        return result

    def execute(self, code: str) -> str:
        """Run a simple whitelisted command line and return its output."""
        parts = code.split()
        if not parts:
            raise SandboxError("empty command")

        for index, part in enumerate(parts):
            for char in _DANGEROUS_CHARS:
                if char in part:
                    raise SandboxError(
                        "arbitrary shell execution is not allowed: "
                        f"argument {index} contains dangerous character {char!r}"
                    )
            if any(ord(c) < 32 and c not in "\t\n\r" for c in part):
                raise SandboxError(
                    "arbitrary shell execution is not allowed: "
                    f"argument {index} contains non-printable character"
                )

        if not self.validate_tool(parts[0]):
            raise SandboxError(f"tool not allowed: {parts[0]}")

        return self.run(Command(tuple(parts))).output

    def validate_tool(self, tool: str) -> bool:
        """True if the tool, or its base name, is on the whitelist."""
        if tool in ALLOWED_TOOLS:
            return True
        return posixpath.basename(tool) in ALLOWED_TOOLS

    def prepare_command(self, command: Command) -> Command:
        """Return the command with a restricted environment and platform limits."""
        limits = None
        if sys.platform.startswith("linux") or sys.platform == "darwin":
            limits = self.resource_limits
        return replace(command, env=self._restricted_env(), limits=limits)

    def validate_path(self, path: str) -> str:
        """Return the absolute path if access is allowed, else raise SandboxError."""
        path = _clean(path)
        if not posixpath.isabs(path):
            path = _clean(posixpath.join(self.config.work_dir, path))
        return self._validate_absolute_path(path)

    def _validate_absolute_path(self, path: str) -> str:
        for pattern in self.denied_patterns:
            if _glob_match(pattern, path):
                raise SandboxError(f"access denied: path matches blocked pattern: {pattern}")
            fragment = pattern[2:] if pattern.startswith("*/") else pattern
            if fragment in path:
                raise SandboxError(f"access denied: path contains blocked pattern: {pattern}")

        if not any(path.startswith(allowed) for allowed in self.allowed_paths):
            raise SandboxError(f"access denied: path not in allowed list: {path}")
        return path

    def _restricted_env(self) -> dict[str, str]:
        env: dict[str, str] = {}
        for name in SAFE_ENV_VARS:
            value = os.environ.get(name, "")
            if value:
                env[name] = self._sanitize_path(value) if name == "PATH" else value
        env["SANDBOX"] = self.config.root_dir
        return env

    @staticmethod
    def _sanitize_path(path: str) -> str:
        safe = [
            directory
            for directory in path.split(os.pathsep)
            if directory.startswith(SAFE_PATH_PREFIXES)
        ]
        return os.pathsep.join(safe)


class PathValidator:
    """Checks paths against denied glob patterns and allowed prefixes."""

    def __init__(self, allowed: list[str] | None = None, denied: list[str] | None = None) -> None:
        self.allowed_prefixes = list(allowed or [])
        self.denied_patterns = list(denied or [])

    def validate(self, path: str) -> str:
        """Return the cleaned path if it is safe, else raise SandboxError."""
        clean = _clean(path)
        for pattern in self.denied_patterns:
            if _glob_match(pattern, clean):
                raise SandboxError(f"path blocked by pattern: {pattern}")
        if self.allowed_prefixes and not any(
            clean.startswith(prefix) for prefix in self.allowed_prefixes
        ):
            raise SandboxError(f"path not in allowed prefixes: {clean}")
        return clean


class CommandBuilder:
    """Builds commands ready to run in a sandbox."""

    def __init__(self, sandbox: Sandbox) -> None:
        self.sandbox = sandbox

    def build(self, name: str, *args: str) -> Command:
        command = Command((name, *args), cwd=self.sandbox.config.work_dir)
        return self.sandbox.prepare_command(command)


def quick_run(name: str, *args: str) -> RunResult:
    """Run a simple command in a sandbox with the default configuration."""
    sandbox = Sandbox(default_config())
    return sandbox.run(CommandBuilder(sandbox).build(name, *args))


def is_secure_environment() -> bool:
    """True if the process appears to run inside a container."""
    if os.path.exists("/.dockerenv"):
        return True
    try:
        with open("/proc/1/cgroup", encoding="utf-8", errors="replace") as handle:
            data = handle.read()
    except OSError:
        return False
    return any(marker in data for marker in ("docker", "kubepods", "containerd"))
import os
import sys

import pytest

from cicdrunner.security.sandbox import (
    DEFAULT_TIMEOUT,
    MAX_MEMORY_BYTES,
    Command,
    CommandBuilder,
    PathValidator,
    RunResult,
    Sandbox,
    SandboxConfig,
    SandboxError,
    default_config,
    default_resource_limits,
    quick_run,
)


def test_new_sandbox_uses_default_config():
    sandbox = Sandbox(None)
    assert sandbox.config.work_dir == os.getcwd()
    assert sandbox.allowed_paths == [os.getcwd()]


def test_default_config():
    cfg = default_config()
    assert cfg.root_dir == os.path.join(os.getcwd(), ".sandbox")
    assert cfg.work_dir == os.getcwd()
    assert cfg.allow_network is False
    assert cfg.timeout == DEFAULT_TIMEOUT
    assert cfg.enable_seccomp is True
    assert cfg.enable_landlock is False


def test_default_resource_limits():
    limits = default_resource_limits()
    assert limits.max_memory == MAX_MEMORY_BYTES
    assert limits.max_cpu == 1.0
    assert limits.max_wall_time == DEFAULT_TIMEOUT
    assert limits.max_processes == 100
    assert limits.max_files == 1024


@pytest.mark.parametrize("tool", ["git", "grep", "cat", "ls", "/usr/bin/git"])
def test_validate_tool_allowed(tool):
    assert Sandbox(None).validate_tool(tool) is True


@pytest.mark.parametrize("tool", ["rm", "chmod", "chown", "python"])
def test_validate_tool_blocked(tool):
    assert Sandbox(None).validate_tool(tool) is False


def test_validate_path_workdir_allowed():
    sandbox = Sandbox(None)
    assert sandbox.validate_path(sandbox.config.work_dir) == sandbox.config.work_dir


@pytest.mark.parametrize("path", ["/etc/passwd", "/etc/shadow", "~/.ssh/config"])
def test_validate_path_blocked(path):
    with pytest.raises(SandboxError, match="access denied"):
        Sandbox(None).validate_path(path)


def test_validate_path_git_config_blocked(tmp_path):
    sandbox = Sandbox(SandboxConfig(work_dir=str(tmp_path), read_only_paths=[str(tmp_path)]))
    with pytest.raises(SandboxError, match="blocked pattern"):
        sandbox.validate_path("repo/.git/config")


def test_validate_path_outside_allowed(tmp_path):
    sandbox = Sandbox(SandboxConfig(work_dir=str(tmp_path), read_only_paths=[str(tmp_path)]))
    with pytest.raises(SandboxError, match="not in allowed list"):
        sandbox.validate_path("/usr/share/file.txt")


def test_validate_path_relative_resolves(tmp_path):
    sandbox = Sandbox(SandboxConfig(work_dir=str(tmp_path), read_only_paths=[str(tmp_path)]))
    assert sandbox.validate_path("sub/./file.txt") == str(tmp_path / "sub" / "file.txt")


def test_run_echo_succeeds():
    sandbox = Sandbox(None)
    result = sandbox.run(Command(("echo", "hello")))
    assert result.is_success()
    assert result.exit_code == 0
    assert result.output.strip() == "hello"


def test_run_nonzero_exit():
    sandbox = Sandbox(None)
    result = sandbox.run(Command((sys.executable, "-c", "import sys; sys.exit(3)")))
    assert result.exit_code == 3
    assert result.error == "exit status 3"
    assert not result.is_success()


def test_run_timeout_kills_process():
    cfg = default_config()
    cfg.timeout = 0.2
    sandbox = Sandbox(cfg)
    result = sandbox.run(Command((sys.executable, "-c", "import time; time.sleep(5)")))
    assert result.is_timeout()
    assert result.exit_code == -1
    assert not result.is_success()


def test_run_start_failure():
    with pytest.raises(SandboxError, match="failed to start command"):
        Sandbox(None).run(Command(("/nonexistent/program-xyz",)))


def test_prepare_command_restricts_env(monkeypatch):
    monkeypatch.setenv("PATH", os.pathsep.join(["/usr/bin", "/home/someone/bin"]))
    monkeypatch.setenv("SECRET_VALUE", "secret")
    sandbox = Sandbox(None)
    prepared = sandbox.prepare_command(Command(("ls",)))
    assert prepared.env["PATH"] == "/usr/bin"
    assert prepared.env["SANDBOX"] == sandbox.config.root_dir
    assert "SECRET_VALUE" not in prepared.env
    assert set(prepared.env) <= {"PATH", "HOME", "USER", "LANG", "LC_ALL", "TERM", "TZ", "SANDBOX"}


def test_execute_empty_command():
    with pytest.raises(SandboxError, match="empty command"):
        Sandbox(None).execute("   ")


@pytest.mark.parametrize("code", ["ls | cat", "cat $HOME", "ls;rm", "cat 'x'", "ls *"])
def test_execute_rejects_dangerous_characters(code):
    with pytest.raises(SandboxError, match="dangerous character"):
        Sandbox(None).execute(code)


def test_execute_rejects_control_character():
    with pytest.raises(SandboxError, match="not allowed"):
        Sandbox(None).execute("ls \x07x")


def test_execute_rejects_unlisted_tool():
    with pytest.raises(SandboxError, match="tool not allowed: rm"):
        Sandbox(None).execute("rm file")


def test_execute_returns_output(tmp_path):
    target = tmp_path / "note.txt"
    target.write_text("sandboxed content\n")
    assert Sandbox(None).execute(f"cat {target}") == "sandboxed content\n"


def test_path_validator():
    validator = PathValidator(["/tmp", "/home/user"], ["/etc/shadow", "*.key"])
    assert validator.validate("/tmp/file.txt") == "/tmp/file.txt"
    with pytest.raises(SandboxError, match="blocked by pattern"):
        validator.validate("/etc/shadow")
    with pytest.raises(SandboxError, match="not in allowed prefixes"):
        validator.validate("/root/file.txt")


def test_path_validator_glob_does_not_cross_separator():
    validator = PathValidator([], ["*.key"])
    assert validator.validate("dir/server.key") == "dir/server.key"
    with pytest.raises(SandboxError):
        validator.validate("server.key")


def test_command_builder_sets_workdir_and_env():
    sandbox = Sandbox(None)
    command = CommandBuilder(sandbox).build("git", "status")
    assert command.args == ("git", "status")
    assert command.cwd == sandbox.config.work_dir
    assert command.env["SANDBOX"] == sandbox.config.root_dir


def test_quick_run():
    result = quick_run("echo", "test")
    assert result.is_success()
    assert result.output.strip() == "test"


def test_run_result_predicates():
    assert RunResult(error="permission denied: x").is_permission_denied() is True
    assert RunResult(error="access denied").is_permission_denied() is True
    assert RunResult(error="exit status 1").is_permission_denied() is False
    assert RunResult().is_permission_denied() is False
    assert RunResult(error="signal: killed").is_timeout() is True
    assert RunResult(success=True, exit_code=0).is_success() is True
    assert RunResult(success=True, exit_code=2).is_success() is False
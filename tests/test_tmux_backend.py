from __future__ import annotations

import subprocess

import pytest

from agentmux.errors import BackendError
from agentmux.tmux.backend import TmuxBackend
from fakes import FakeClock, SteppingToken


def _cp(returncode: int, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class _Recorder:
    def __init__(self, *responses: subprocess.CompletedProcess) -> None:
        self.responses = list(responses)
        self.calls: list[list[str]] = []

    def __call__(self, cmd: list[str], **_: object) -> subprocess.CompletedProcess:
        self.calls.append(cmd)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def test_has_session_uses_exact_target() -> None:
    runner = _Recorder(_cp(0))

    assert TmuxBackend(runner=runner).has_session("worker") is True
    assert runner.calls == [["tmux", "has-session", "-t", "=worker"]]


def test_has_session_false_when_session_or_server_missing() -> None:
    backend = TmuxBackend(runner=_Recorder(_cp(1, stderr="can't find session: worker")))
    assert backend.has_session("worker") is False

    backend = TmuxBackend(runner=_Recorder(_cp(1, stderr="no server running on /tmp/tmux-0/default")))
    assert backend.has_session("worker") is False


def test_has_session_raises_on_unexpected_failure() -> None:
    backend = TmuxBackend(runner=_Recorder(_cp(1, stderr="protocol version mismatch")))

    with pytest.raises(BackendError) as exc_info:
        backend.has_session("worker")

    assert exc_info.value.operation == "has-session"
    assert "protocol version mismatch" in str(exc_info.value)


def test_socket_is_passed_to_every_command() -> None:
    runner = _Recorder(_cp(0))

    TmuxBackend(runner=runner, socket="/tmp/agentmux.sock").kill_session("worker")

    assert runner.calls == [["tmux", "-S", "/tmp/agentmux.sock", "kill-session", "-t", "=worker"]]


def test_new_session_sets_start_directory() -> None:
    runner = _Recorder(_cp(0))

    TmuxBackend(runner=runner).new_session("worker", workdir="/work/a")

    assert runner.calls == [["tmux", "new-session", "-d", "-s", "worker", "-c", "/work/a"]]


def test_send_line_types_literal_text_then_enter_separately() -> None:
    runner = _Recorder(_cp(0))

    TmuxBackend(runner=runner).send_line("worker", "Enter; rm -rf /")

    assert runner.calls == [
        ["tmux", "send-keys", "-t", "=worker:", "-l", "--", "Enter; rm -rf /"],
        ["tmux", "send-keys", "-t", "=worker:", "Enter"],
    ]


@pytest.mark.parametrize("text", ["- item one", "--help", "-"])
def test_send_literal_ends_option_parsing_before_text(text: str) -> None:
    runner = _Recorder(_cp(0))

    TmuxBackend(runner=runner).send_literal("worker", text)

    assert runner.calls == [["tmux", "send-keys", "-t", "=worker:", "-l", "--", text]]


def test_pane_commands_never_use_bare_session_prefix() -> None:
    runner = _Recorder(_cp(0, stdout="node\n"))
    backend = TmuxBackend(runner=runner)

    backend.send_literal("worker-1", "hi")
    backend.send_enter("worker-1")
    backend.get_pane_command("worker-1")
    backend.get_pane_workdir("worker-1")
    backend.capture_pane_lines("worker-1", 5)

    targets = [cmd[cmd.index("-t") + 1] for cmd in runner.calls]
    assert targets == ["=worker-1:"] * 5


def test_failed_command_raises_backend_error_with_stderr_hint() -> None:
    backend = TmuxBackend(runner=_Recorder(_cp(1, stderr="can't find pane: worker")))

    with pytest.raises(BackendError) as exc_info:
        backend.send_enter("worker")

    assert exc_info.value.session == "worker"
    assert exc_info.value.hint == "can't find pane: worker"


def test_missing_tmux_binary_raises_backend_error() -> None:
    def runner(cmd: list[str], **_: object) -> subprocess.CompletedProcess:
        raise FileNotFoundError("tmux")

    with pytest.raises(BackendError):
        TmuxBackend(runner=runner).list_sessions()


def test_timeout_raises_backend_error() -> None:
    def runner(cmd: list[str], **_: object) -> subprocess.CompletedProcess:
        raise subprocess.TimeoutExpired(cmd, 1.0)

    with pytest.raises(BackendError):
        TmuxBackend(runner=runner).get_pane_command("worker")


def test_list_sessions_empty_without_server() -> None:
    backend = TmuxBackend(runner=_Recorder(_cp(1, stderr="no server running on /tmp/tmux-0/default")))

    assert backend.list_sessions() == []


def test_list_sessions_parses_names() -> None:
    backend = TmuxBackend(runner=_Recorder(_cp(0, stdout="alpha\nbeta\n\n")))

    assert backend.list_sessions() == ["alpha", "beta"]


def test_find_sessions_by_workdir_matches_exact_path_once() -> None:
    output = "alpha\t/work/a\nalpha\t/work/a\nbeta\t/work/a/sub\ngamma\t/work/a\nDelta\t/Work/a\nbroken line\n"
    backend = TmuxBackend(runner=_Recorder(_cp(0, stdout=output)))

    assert backend.find_sessions_by_workdir("/work/a") == ["alpha", "gamma"]


def test_pane_queries_strip_output() -> None:
    runner = _Recorder(_cp(0, stdout="node\n"), _cp(0, stdout="/work/a\n"))
    backend = TmuxBackend(runner=runner)

    assert backend.get_pane_command("worker") == "node"
    assert backend.get_pane_workdir("worker") == "/work/a"
    assert runner.calls[0] == ["tmux", "display-message", "-p", "-t", "=worker:", "#{pane_current_command}"]


def test_capture_pane_lines_drops_trailing_blank_lines() -> None:
    runner = _Recorder(_cp(0, stdout="one\ntwo\n> \n\n\n"))

    lines = TmuxBackend(runner=runner).capture_pane_lines("worker", 2)

    assert lines == ["two", "> "]
    assert runner.calls == [["tmux", "capture-pane", "-p", "-t", "=worker:", "-S", "-2"]]


def test_wait_for_command_returns_when_program_replaces_shell() -> None:
    runner = _Recorder(_cp(0, stdout="bash\n"), _cp(0, stdout="bash\n"), _cp(0, stdout="node\n"))
    clock = FakeClock()

    TmuxBackend(runner=runner, clock=clock).wait_for_command(
        "worker",
        {"bash", "zsh"},
        5.0,
        cancel=SteppingToken(clock),
    )

    assert len(runner.calls) == 3


def test_wait_for_command_times_out() -> None:
    clock = FakeClock()
    backend = TmuxBackend(runner=_Recorder(_cp(0, stdout="zsh\n")), clock=clock)

    with pytest.raises(BackendError) as exc_info:
        backend.wait_for_command("worker", {"zsh"}, 1.0, cancel=SteppingToken(clock))

    assert exc_info.value.operation == "wait-for-command"
    assert clock.now == pytest.approx(1001.0)


def test_wait_for_shell_ready_accepts_supported_shell() -> None:
    runner = _Recorder(_cp(0, stdout="node\n"), _cp(0, stdout="fish\n"))
    clock = FakeClock()

    TmuxBackend(runner=runner, clock=clock).wait_for_shell_ready("worker", 5.0, cancel=SteppingToken(clock))

    assert len(runner.calls) == 2

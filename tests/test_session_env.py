from __future__ import annotations

from agentmux import env


def test_read_session_env_strips_values() -> None:
    context = env.read_session_env(
        {
            env.SESSION_ID: " s1 ",
            env.ROLE: "polecat",
            env.RIG: "gastown",
            env.ACTOR: "gastown/polecat/nux",
        }
    )

    assert context.session_id == "s1"
    assert context.role == "polecat"
    assert context.rig == "gastown"
    assert context.actor == "gastown/polecat/nux"
    assert context.worker == ""


def test_build_session_env_sets_canonical_variables() -> None:
    result = env.build_session_env(session_id="s1", workdir="/work/a")

    assert result == {env.SESSION_ID: "s1", env.WORKDIR: "/work/a"}


def test_build_session_env_overrides_are_applied_last() -> None:
    result = env.build_session_env(
        session_id="s1",
        workdir="",
        overrides={env.SESSION_ID: "other", "CLAUDE_CONFIG_DIR": "/acct"},
    )

    assert result == {env.SESSION_ID: "other", "CLAUDE_CONFIG_DIR": "/acct"}

"""Module entrypoint for `python -m agentmux`."""

from agentmux.cli import run

if __name__ == "__main__":
    raise SystemExit(run())

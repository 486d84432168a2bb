"""CLI entry point for shellbridge."""

from __future__ import annotations

import asyncio
import io
import logging
import signal
import sys

import typer

from shellbridge.cancel import CancellationToken
from shellbridge.config import BridgeConfig, parse_env_pairs
from shellbridge.input.console import raw_mode
from shellbridge.input.keys import KEY_SEQUENCES
from shellbridge.pty.provider import LaunchError
from shellbridge.session.terminal import COLS, ROWS, Terminal, default_shell

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="shellbridge",
    help="Run a command in an interactive shell behind a pseudo-terminal.",
    no_args_is_help=True,
)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _stdin_fd() -> int | None:
    try:
        return sys.stdin.fileno()
    except (AttributeError, ValueError, io.UnsupportedOperation):
        return None


def _write_stdout(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


async def _run_session(terminal: Terminal, command: str, args: list[str]) -> int:
    app_token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, app_token.cancel)
        loop.add_signal_handler(signal.SIGHUP, app_token.cancel)
    except (NotImplementedError, AttributeError):
        pass

    try:
        with raw_mode(_stdin_fd()):
            await terminal.run(command, *args, cancel=app_token)
    except LaunchError as e:
        typer.echo(f"Error: {e}", err=True)
        return 1
    finally:
        terminal.dispose()
    return 0


@app.command(
    context_settings={"allow_interspersed_args": False, "ignore_unknown_options": True}
)
def run(
    command: str = typer.Argument(help="Command to type into the shell."),
    args: list[str] | None = typer.Argument(None, help="Arguments for the command."),
    env: list[str] | None = typer.Option(
        None, "--env", "-e", help="Environment override KEY=VALUE (repeatable)."
    ),
    cwd: str | None = typer.Option(
        None, "--cwd", "-C", help="Working directory for the shell."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Start the shell, submit COMMAND and attach this terminal to it."""
    config = BridgeConfig.load(config_file)
    setup_logging(verbose or config.verbose)

    try:
        overrides = parse_env_pairs(env or [])
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    terminal = Terminal(_write_stdout, None, on_exit=lambda: logger.debug("Shell exited"))
    terminal.with_environment(config.env).with_environment(overrides)
    if cwd or config.cwd:
        terminal.with_working_directory(cwd or config.cwd)

    raise typer.Exit(asyncio.run(_run_session(terminal, command, args or [])))


@app.command()
def keys() -> None:
    """Show the key-to-sequence table and session defaults."""
    typer.echo(f"shell: {default_shell()}  geometry: {COLS}x{ROWS}")
    for key, sequence in KEY_SEQUENCES.items():
        typer.echo(f"{key.value:<10} {sequence.encode('unicode_escape').decode()}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()

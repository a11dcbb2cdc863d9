"""CLI entry point using Click."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.live import Live
from rich.text import Text

from teletext_core import __version__
from teletext_core.animation.reveal import RevealAnimation
from teletext_core.animation.transition import TransitionState
from teletext_core.config import CoreConfig, load_config
from teletext_core.errors import InvalidArgumentError, OperationTimeoutError
from teletext_core.runtime import CoreRuntime, create_runtime
from teletext_core.utilities.logger import bind_command_context, get_logger, setup_logging

logger = logging.getLogger(__name__)


def _bad_parameter(exc: InvalidArgumentError) -> click.BadParameter:
    hint = f"--{exc.argument.replace('_', '-')}" if exc.argument else None
    return click.BadParameter(str(exc), param_hint=hint)


@click.group(invoke_without_command=True)
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="JSON config file (default: $TELETEXT_CORE_CONFIG)")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
@click.option("--version", is_flag=True, help="Show version and exit")
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    debug: bool,
    json_logs: bool,
    version: bool,
) -> None:
    """Teletext core - reveal and theme transition demos."""
    if version:
        click.echo(f"teletext-core {__version__}")
        ctx.exit()
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit()

    setup_logging(debug=debug, json_output=json_logs)
    try:
        ctx.obj = load_config(config_path)
    except InvalidArgumentError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e
    get_logger("teletext_core.cli").debug("config_loaded", sources=ctx.obj.sources)


# ------------------------------------------------------------------
# reveal
# ------------------------------------------------------------------


@main.command("reveal")
@click.argument("text", nargs=-1)
@click.option("--speed", type=float, default=None, help="Characters per second")
@click.option("--cursor/--no-cursor", "show_cursor", default=None, help="Draw the blinking cursor")
@click.option("--think", type=float, default=0.0, show_default=True,
              help="Show the thinking indicator for this many seconds first")
@click.option("--skip-after", type=float, default=None,
              help="Reveal everything at once after this many seconds")
@click.pass_obj
def reveal_command(
    config: CoreConfig,
    text: tuple[str, ...],
    speed: float | None,
    show_cursor: bool | None,
    think: float,
    skip_after: float | None,
) -> None:
    """Reveal TEXT one character at a time."""
    bind_command_context("reveal", chars=sum(len(part) for part in text))
    if think < 0:
        raise click.BadParameter("must be >= 0", param_hint="--think")
    if skip_after is not None and skip_after < 0:
        raise click.BadParameter("must be >= 0", param_hint="--skip-after")

    console = Console()
    try:
        final = asyncio.run(_run_reveal(
            config,
            " ".join(text),
            speed=speed,
            show_cursor=show_cursor,
            think=think,
            skip_after=skip_after,
            console=console,
        ))
    except InvalidArgumentError as e:
        raise _bad_parameter(e) from e

    if not console.is_terminal:
        click.echo(final)


async def _run_reveal(
    config: CoreConfig,
    text: str,
    *,
    speed: float | None,
    show_cursor: bool | None,
    think: float,
    skip_after: float | None,
    console: Console,
) -> str:
    runtime = create_runtime(config)
    done = asyncio.Event()
    try:
        animation = runtime.create_reveal(
            speed=speed, show_cursor=show_cursor, on_complete=done.set,
        )
        if console.is_terminal:
            with Live(Text(""), console=console, refresh_per_second=30) as live:
                animation.subscribe(lambda _state: live.update(Text(animation.display_text)))
                await _drive_reveal(runtime, animation, text, think, skip_after, done)
                live.update(Text(animation.state.revealed_text))
        else:
            await _drive_reveal(runtime, animation, text, think, skip_after, done)

        if animation.last_error is not None:
            raise click.ClickException(str(animation.last_error))
        return animation.state.revealed_text
    finally:
        runtime.dispose()


async def _drive_reveal(
    runtime: CoreRuntime,
    animation: RevealAnimation,
    text: str,
    think: float,
    skip_after: float | None,
    done: asyncio.Event,
) -> None:
    if think > 0:
        animation.start_thinking()
        await runtime.clock.sleep(think)
        animation.stop_thinking()

    if skip_after is not None:
        runtime.timeouts.create_named_timeout("skip", runtime.skip_signal.press, skip_after)
    animation.start(text)

    # Settles on completion, or on a listener failure that left the animation idle.
    while not done.is_set() and animation.is_active:
        await runtime.clock.sleep(animation.options.interval)


# ------------------------------------------------------------------
# transition
# ------------------------------------------------------------------


@main.command("transition")
@click.argument("from_key")
@click.argument("to_key")
@click.option("--name", "display_name", default=None, help="Display name used in the banner")
@click.option("--duration", type=float, default=None,
              help="Fade duration in seconds (default: per-theme)")
@click.option("--banner/--no-banner", "show_banner", default=None, help="Show the activation banner")
@click.option("--timeout", type=float, default=None,
              help="Give up after this many seconds (default: timeouts.default)")
@click.pass_obj
def transition_command(
    config: CoreConfig,
    from_key: str,
    to_key: str,
    display_name: str | None,
    duration: float | None,
    show_banner: bool | None,
    timeout: float | None,
) -> None:
    """Run a theme transition from FROM_KEY to TO_KEY, printing each phase."""
    bind_command_context("transition", from_key=from_key, to_key=to_key)
    try:
        asyncio.run(_run_transition(
            config,
            from_key,
            to_key,
            display_name or to_key.replace("-", " ").title(),
            duration=duration,
            show_banner=show_banner,
            timeout=timeout,
        ))
    except InvalidArgumentError as e:
        raise _bad_parameter(e) from e
    except OperationTimeoutError as e:
        raise click.ClickException(str(e)) from e


async def _run_transition(
    config: CoreConfig,
    from_key: str,
    to_key: str,
    display_name: str,
    *,
    duration: float | None,
    show_banner: bool | None,
    timeout: float | None,
) -> None:
    runtime = create_runtime(config)
    transition = runtime.transition
    last_line = ""

    def on_state(state: TransitionState) -> None:
        nonlocal last_line
        line = str(state.phase)
        if state.banner_visible:
            line = f"{line}: {state.banner_text}"
        if line != last_line:
            last_line = line
            click.echo(line)

    def apply_theme() -> None:
        click.echo(f"  applied {to_key}")

    transition.subscribe(on_state)
    try:
        options = runtime.transition_options(duration=duration, show_banner=show_banner)
        handle = transition.execute(from_key, to_key, display_name, apply_theme, options)
        await runtime.timeouts.with_timeout(handle, timeout, operation=f"transition to {to_key}")
    finally:
        runtime.dispose()

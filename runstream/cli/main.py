"""CLI entry point.

A thin view layer over :class:`RunController`:
- run: Start a run and print the transcript as it streams
- plan: Request a draft plan for review, optionally execute it
- cancel: Cancel a run by id
"""

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from runstream.logging_config import configure_logging
from runstream.models import MessageKind, RunMode, RunPhase, RunState

app = typer.Typer(
    name="runstream",
    help="Client for streamed multi-agent orchestration runs",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

_KIND_STYLES = {
    MessageKind.USER: ("You", "cyan"),
    MessageKind.AGENT: ("Agent", "green"),
    MessageKind.SYSTEM: ("System", "yellow"),
}


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log stream and request activity"),
    ] = False,
) -> None:
    configure_logging("DEBUG" if verbose else None)


class TranscriptPrinter:
    """Subscriber that prints messages as they are appended to the run state."""

    def __init__(self) -> None:
        self._printed = 0

    def __call__(self, state: RunState) -> None:
        # clear_chat shrinks the transcript
        if len(state.messages) < self._printed:
            self._printed = 0
        for message in state.messages[self._printed :]:
            title, style = _KIND_STYLES[message.kind]
            console.print(Panel(Markdown(message.content), title=title, border_style=style))
        self._printed = len(state.messages)


@app.command()
def run(
    message: Annotated[str, typer.Argument(help="Request for the agents")],
    mode: Annotated[
        RunMode,
        typer.Option("--mode", "-m", help="stream (live events) or sync (single request)"),
    ] = RunMode.STREAM,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", "-t", help="Give up waiting after this many seconds"),
    ] = None,
) -> None:
    """Start a run and print its transcript.

    Examples:
        runstream run "Add a health endpoint"
        runstream run "Summarise the repo" --mode sync
    """
    if mode is RunMode.PLAN_ONLY:
        console.print("[red]Use 'runstream plan' for plan-only requests.[/red]")
        raise typer.Exit(code=2)
    state = asyncio.run(_run(message, mode, timeout))
    if state.phase is RunPhase.ERRORED:
        raise typer.Exit(code=1)


async def _run(message: str, mode: RunMode, timeout: float | None) -> RunState:
    from runstream.controller import RunController

    controller = RunController()
    controller.subscribe(TranscriptPrinter())
    try:
        await controller.start_run(message, mode)
        try:
            await controller.wait_until_idle(timeout)
        except TimeoutError:
            console.print(f"[yellow]Still running after {timeout}s, cancelling.[/yellow]")
            await controller.cancel_run()
        return controller.state
    finally:
        await controller.aclose()


@app.command()
def plan(
    message: Annotated[str, typer.Argument(help="Request to plan")],
    execute: Annotated[
        bool,
        typer.Option("--execute", "-x", help="Execute the plan once it is returned"),
    ] = False,
    feedback: Annotated[
        str | None,
        typer.Option("--feedback", "-f", help="Revision feedback sent with the execution"),
    ] = None,
) -> None:
    """Request a draft plan for review.

    Examples:
        runstream plan "Refactor the parser"
        runstream plan "Refactor the parser" --execute --feedback "Skip the tests task"
    """
    asyncio.run(_plan(message, execute, feedback))


async def _plan(message: str, execute: bool, feedback: str | None) -> None:
    from runstream.controller import RunController

    controller = RunController()
    printer = TranscriptPrinter()
    controller.subscribe(printer)
    try:
        state = await controller.request_plan(message)
        if state.plan is None:
            return
        console.print(
            Panel(
                Markdown(state.plan.to_markdown()),
                title=f"Plan {state.plan.plan_id or ''}".strip(),
                border_style="blue",
            )
        )
        if not execute:
            return
        if feedback:
            await controller.revise_plan(feedback)
        else:
            await controller.approve_plan()
        await controller.wait_until_idle()
    finally:
        await controller.aclose()


@app.command()
def cancel(
    run_id: Annotated[str, typer.Argument(help="Run to cancel")],
) -> None:
    """Cancel a running run by id."""
    asyncio.run(_cancel(run_id))


async def _cancel(run_id: str) -> None:
    from runstream.api.client import RunApiClient
    from runstream.exceptions import RunApiError
    from runstream.settings import get_settings

    settings = get_settings()
    api = RunApiClient(settings.api_url, settings.request_timeout)
    try:
        response = await api.cancel_run(run_id)
    except RunApiError as e:
        console.print(f"[red]Failed to cancel run: {e}[/red]")
        raise typer.Exit(code=1) from e
    finally:
        await api.close()

    if response.succeeded:
        console.print(f"[green]{response.message or 'Run cancellation requested.'}[/green]")
    else:
        console.print(f"[red]Failed to cancel run: {response.message or response.status}[/red]")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()

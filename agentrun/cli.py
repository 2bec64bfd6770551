# agentrun/cli.py
"""
Command-line interface for agentrun.

Runs scripted turns from the terminal, lists the built-in tools, shows the
effective configuration and launches the HTTP/WebSocket server. Built with
Typer and Rich.
"""

import asyncio
import json
import os
import tempfile
import uuid
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from agentrun.exceptions import AgentRunError
from agentrun.persistence.memory import InMemoryStore
from agentrun.providers.replay_provider import ScriptedProvider
from agentrun.runtime import AgentRuntime
from agentrun.schemas.events import EventEnvelope
from agentrun.schemas.runtime import TurnConfig, TurnRequest
from agentrun.schemas.settings import AppSettings
from agentrun.tools.base import ToolContext
from agentrun.tools.defaults import build_default_registry
from agentrun.utils.config import get_config
from agentrun.utils.logger import setup_logger

load_dotenv()

app = typer.Typer(
    name="agentrun",
    help="Run bounded, tool-using agent turns.",
    add_completion=False,
)
console = Console()
logger = setup_logger(__name__)

_EVENT_STYLES = {
    "message.delta": "white",
    "tool.start": "cyan",
    "tool.complete": "green",
    "tool.error": "red",
    "tool.approval_required": "yellow",
    "file.created": "magenta",
    "agent.step_limit": "yellow",
    "error": "bold red",
    "message.complete": "bold green",
}

ScriptArg = Annotated[
    Path,
    typer.Argument(
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        help="YAML file with the scripted model steps.",
    ),
]


def _load_settings() -> AppSettings:
    try:
        return AppSettings.from_config(get_config())
    except AgentRunError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1)


def _render(envelope: EventEnvelope) -> None:
    wire = envelope.to_wire()
    style = _EVENT_STYLES.get(wire["type"], "dim")
    if wire["type"] == "message.delta":
        console.print(wire["data"]["content"], end="", style=style)
        return
    console.print(f"\n[{style}]{wire['type']}[/{style}] {json.dumps(wire['data'], default=str)}")


async def _run_scripted_turn(
    runtime: AgentRuntime,
    request: TurnRequest,
    approve_all: bool,
) -> int:
    await runtime.start()
    try:
        handle, _ = await runtime.start_turn(request)
        async for envelope in handle.subscribe(replay=True):
            _render(envelope)
            if envelope.type == "tool.approval_required":
                data = envelope.event
                decision = "approved" if approve_all else "denied"
                runtime.approvals.decide(request.session_id, data.tool_call_id, decision)
        result = await handle.wait()
    finally:
        await runtime.shutdown()
    console.print(
        f"\n\n[bold]Finish reason:[/bold] {result.finish_reason.value}  "
        f"[bold]Steps:[/bold] {result.steps_taken}"
    )
    return 0 if result.error_code is None else 1


@app.command(name="run-turn")
def run_turn(
    script: ScriptArg,
    message: Annotated[str, typer.Option("--message", "-m", help="User message.")] = "Hello",
    workspace: Annotated[
        Optional[Path], typer.Option(help="Workspace directory (temporary if omitted).")
    ] = None,
    max_steps: Annotated[Optional[int], typer.Option(min=1)] = None,
    approve_all: Annotated[
        bool, typer.Option("--approve-all", help="Approve confirmation-gated tools.")
    ] = False,
) -> None:
    """
    Runs one turn against a scripted model and prints the event stream.
    """
    settings = _load_settings()
    store = InMemoryStore()
    workspace_dir = str(workspace or tempfile.mkdtemp(prefix="agentrun-"))
    session = store.create_session(str(uuid.uuid4()), workspace_dir=workspace_dir)
    runtime = AgentRuntime(ScriptedProvider.from_yaml(str(script)), settings, store=store)
    config = None
    if max_steps is not None:
        config = TurnConfig(max_steps=max_steps, max_duration_ms=settings.agent.max_duration_ms)
    request = TurnRequest(session_id=session.session_id, message=message, config=config)

    console.print(f"📄 Script: [bold cyan]{script}[/bold cyan]  workspace: {workspace_dir}")
    try:
        code = asyncio.run(_run_scripted_turn(runtime, request, approve_all))
    except AgentRunError as e:
        console.print(f"[bold red]Turn failed:[/bold red] {e.__class__.__name__}: {e}")
        raise typer.Exit(code=1)
    raise typer.Exit(code=code)


@app.command(name="list-tools")
def list_tools() -> None:
    """
    Lists the built-in tools and their confirmation requirements.
    """
    settings = _load_settings()
    context = ToolContext(session_id="cli", workspace_dir=Path(tempfile.gettempdir()))
    registry = build_default_registry(context, settings)
    table = Table(title="🛠️  agentrun built-in tools")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Description", style="white")
    table.add_column("Confirmation", style="yellow")
    table.add_column("Timeout (ms)", style="magenta")
    for name in registry.names():
        d = registry.get(name).descriptor
        needs = d.requires_confirmation or name in settings.tools.require_approval
        table.add_row(name, d.description, "✅" if needs else "❌", str(d.timeout_ms))
    console.print(table)


@app.command(name="show-config")
def show_config() -> None:
    """
    Prints the effective settings (config.yaml plus environment overrides).
    """
    console.print_json(_load_settings().model_dump_json())


@app.command(name="serve")
def serve(
    script: ScriptArg,
    host: Annotated[str, typer.Option()] = os.getenv("AGENTRUN_HOST", "127.0.0.1"),
    port: Annotated[int, typer.Option()] = int(os.getenv("AGENTRUN_PORT", "8000")),
) -> None:
    """
    Serves the turn API with a scripted model (for demos and client development).
    Clients create sessions with POST /sessions before starting turns.
    """
    from agentrun.web.app import create_app

    settings = _load_settings()
    runtime = AgentRuntime(ScriptedProvider.from_yaml(str(script), repeat_last=True), settings)
    logger.info("Preparing to launch agentrun server on %s:%s", host, port)
    uvicorn.run(create_app(runtime), host=host, port=port, log_level=settings.logging.level.lower())


if __name__ == "__main__":
    app()

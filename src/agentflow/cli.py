"""CLI entry point for agentflow diagnostics."""

from __future__ import annotations

import uuid
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from agentflow import __version__
from agentflow.config import WorkflowSettings, load_settings
from agentflow.errors import UnknownRoleError
from agentflow.integration import CoordinatorIntegration
from agentflow.log import configure_logging
from agentflow.roles import ROLES, AgentRole
from agentflow.workflow import EventKind, Message

console = Console()


def _resolve_role(ctx: click.Context, param: click.Parameter, value: str) -> AgentRole:
    try:
        return ROLES.get(value)
    except UnknownRoleError as e:
        raise click.BadParameter(f"{e} (known: {', '.join(ROLES.names())})") from None


def _settings(ctx: click.Context) -> WorkflowSettings:
    return ctx.obj["settings"]


@click.group()
@click.version_option(version=__version__, prog_name="agentflow")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to config.toml (default: ~/.agentflow/config.toml)",
)
@click.option("--log-level", default="WARNING", help="Minimum log level to print")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, log_level: str, json_logs: bool) -> None:
    """agentflow: graph-based routing between specialist agents."""
    configure_logging(log_level, json_output=json_logs)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = load_settings(config_path)


@main.command()
@click.argument("text")
@click.option(
    "--from",
    "current",
    default="coordinator",
    callback=_resolve_role,
    help="Role currently holding control",
)
@click.pass_context
def route(ctx: click.Context, text: str, current: AgentRole) -> None:
    """Show where TEXT would be routed from the current role."""
    integration = CoordinatorIntegration(settings=_settings(ctx))
    decision = integration.route(uuid.uuid4().hex, current, [Message("user", text)])

    console.print(f"[bold]From:[/bold] {current}")
    console.print(f"[bold]Next:[/bold] [green]{decision.next_role}[/green]")
    console.print(f"[bold]Confidence:[/bold] {decision.confidence:.3f}")
    console.print(f"[bold]Reason:[/bold] {decision.reason}")


@main.command()
@click.argument("texts", nargs=-1, required=True)
@click.option(
    "--start",
    default="coordinator",
    callback=_resolve_role,
    help="Role holding control at the start",
)
@click.option("--dot", "show_dot", is_flag=True, help="Print the execution overlay in DOT")
@click.pass_context
def simulate(ctx: click.Context, texts: tuple[str, ...], start: AgentRole, show_dot: bool) -> None:
    """Route a sequence of messages through one conversation."""
    integration = CoordinatorIntegration(settings=_settings(ctx))
    message_id = f"sim-{uuid.uuid4().hex[:8]}"
    integration.initialize_context(message_id, start)

    role = start
    messages: list[Message] = []
    for text in texts:
        messages.append(Message(role.name, text))
        role = integration.determine_next_role(message_id, role, messages)

    table = Table(title=f"Simulation {message_id}")
    table.add_column("#", style="dim")
    table.add_column("Event", style="cyan")
    table.add_column("From")
    table.add_column("To", style="green")
    table.add_column("Confidence")
    table.add_column("Reason", max_width=50)

    for index, event in enumerate(integration.engine.get_execution_history(message_id)):
        style = "bold red" if event.kind == EventKind.CYCLE_DETECTED else None
        confidence = event.metadata.get("confidence")
        table.add_row(
            str(index),
            event.kind.value,
            str(event.from_role or ""),
            str(event.to_role or ""),
            f"{confidence:.3f}" if confidence is not None else "",
            event.reason or "",
            style=style,
        )

    console.print(table)
    console.print(f"\nFinal role: [bold]{role}[/bold]")
    if show_dot:
        click.echo(integration.visualize_execution(message_id))


@main.command()
@click.pass_context
def graph(ctx: click.Context) -> None:
    """Print the default topology as Graphviz DOT."""
    integration = CoordinatorIntegration(settings=_settings(ctx))
    click.echo(integration.graph.visualize(), nl=False)


@main.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Validate the default topology."""
    workflow_graph = CoordinatorIntegration(settings=_settings(ctx)).graph

    table = Table(title="Edges")
    table.add_column("From", style="cyan")
    table.add_column("To", style="green")
    table.add_column("Weight")
    table.add_column("Reason", max_width=50)
    for edge in workflow_graph.edges:
        table.add_row(
            str(edge.from_role),
            str(edge.to_role),
            f"{edge.weight:.2f}",
            str(edge.metadata.get("reason", "")),
        )
    console.print(table)

    console.print(
        f"\nNodes: {len(workflow_graph.nodes)} | Edges: {len(workflow_graph.edges)} | "
        f"Root: {workflow_graph.root_role}"
    )
    if workflow_graph.has_cycle():
        console.print("[yellow]Topology contains cycles (runtime cycle guard applies)[/yellow]")
    else:
        console.print("[green]Topology is acyclic[/green]")

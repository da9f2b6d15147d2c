"""CLI entry point for LoadVoice."""

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from loadvoice.agents.errors import PipelineError
from loadvoice.agents.keys import CLASSIFICATION
from loadvoice.agents.models import AgentStatus, CallType
from loadvoice.agents.registry import get_registry
from loadvoice.agents.routing import RoutingStrategy
from loadvoice.config import LLM_MODES, load_config
from loadvoice.export import result_to_dict, write_json
from loadvoice.pipeline import process_payload

console = Console(force_terminal=True)

STATUS_STYLES = {
    AgentStatus.COMPLETED: "green",
    AgentStatus.FAILED: "red",
    AgentStatus.RUNNING: "yellow",
    AgentStatus.PENDING: "dim",
}


@click.group()
@click.option(
    "--config", "config_path",
    default=None,
    help="Config file (default: $LOADVOICE_CONFIG or loadvoice.json)",
    type=click.Path(),
)
@click.option(
    "--llm-mode",
    type=click.Choice(LLM_MODES),
    default=None,
    help="LLM access mode (overrides config)",
)
@click.option("--model", default=None, help="Claude model to use (overrides config)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path, llm_mode, model, verbose):
    """LoadVoice - Understand freight broker phone calls."""
    ctx.ensure_object(dict)

    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO, format="%(message)s")

    try:
        config = load_config(Path(config_path) if config_path else None)
    except ValueError as e:
        console.print(f"[red]Error:[/red] Invalid config: {e}")
        ctx.exit(1)
    if llm_mode:
        config.llm_mode = llm_mode
    if model:
        config.model = model
    ctx.obj["config"] = config


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--input", "-i", "input_path",
    required=True,
    help="Transcription JSON file for one call",
    type=click.Path(exists=True),
)
@click.option(
    "--output", "-o", "output_path",
    default=None,
    help="Write the full result as JSON",
    type=click.Path(),
)
@click.pass_context
def analyze(ctx, input_path, output_path):
    """Run the agent pipeline on one call."""
    config = ctx.obj["config"]

    try:
        payload = json.loads(Path(input_path).read_text(encoding="utf-8"))
        result = process_payload(payload, config=config)
    except (ValueError, PipelineError) as e:
        console.print(f"[red]Error:[/red] {e}")
        ctx.exit(1)

    classification = result.classification
    if classification:
        console.print(
            f"Call [bold]{result.call_id}[/bold]: "
            f"[bold]{classification.primary_type.value}[/bold] "
            f"({classification.confidence.value:.2f}, {classification.confidence.level.value})"
        )
        if classification.sub_types:
            console.print(f"  Sub-types: {', '.join(sorted(classification.sub_types))}")
    else:
        console.print(f"Call [bold]{result.call_id}[/bold]: [red]not classified[/red]")

    if result.speakers:
        speakers = Table(title="Speakers")
        speakers.add_column("Label", style="bold")
        speakers.add_column("Role")
        speakers.add_column("Confidence", justify="right")
        speakers.add_column("Turns", justify="right")
        for label, assignment in result.speakers.speakers.items():
            speakers.add_row(
                label,
                assignment.role.value,
                f"{assignment.confidence.value:.2f} ({assignment.confidence.level.value})",
                str(assignment.turns),
            )
        console.print(speakers)

    agents = Table(title="Agents")
    agents.add_column("Agent", style="bold")
    agents.add_column("Status")
    agents.add_column("Time (ms)", justify="right")
    agents.add_column("Tokens", justify="right")
    agents.add_column("Error")
    for name, output in result.outputs.items():
        style = STATUS_STYLES[output.status]
        agents.add_row(
            name,
            f"[{style}]{output.status.value}[/{style}]",
            str(output.execution_time_ms),
            str(output.tokens_used or 0),
            output.error or "",
        )
    console.print(agents)

    rates = result.context.rates
    if rates and rates.agreed_rate:
        console.print(f"Agreed rate: [green]${rates.agreed_rate.value:,.2f}[/green] ({rates.rate_type})")
    if rates and rates.accessorials:
        for charge in rates.accessorials:
            amount = f"${charge.amount:,.2f} {charge.unit}" if charge.amount is not None else "amount not stated"
            console.print(f"Accessorial: {charge.charge_type} ({amount})")

    if result.requires_human_review:
        console.print("[yellow]Requires human review[/yellow]")
        validation = result.context.validation
        if validation:
            for reason in validation.review_reasons:
                console.print(f"  - {reason}")

    if output_path:
        write_json(Path(output_path), result_to_dict(result))
        console.print(f"Wrote [bold]{output_path}[/bold]")


# ---------------------------------------------------------------------------
# Inspection
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("call_type", type=click.Choice([t.value for t in CallType]))
@click.option("--sub-type", "-s", multiple=True, help="Classification sub-type (repeatable)")
def plan(call_type, sub_type):
    """Show the execution plan for a call type."""
    routing = RoutingStrategy(get_registry())
    execution_plan = routing.build_execution_plan(call_type, sub_type)
    critical = routing.get_critical_agents(call_type)

    def label(name: str) -> str:
        return f"[bold]{name}[/bold]*" if name in critical else name

    console.print(f"Plan for [bold]{call_type}[/bold]:")
    console.print(f"  1. classification: {label(CLASSIFICATION.name)}")
    for i, phase in enumerate(execution_plan.phases, start=2):
        console.print(f"  {i}. {phase.name}: {', '.join(label(n) for n in phase.agent_names)}")
    console.print("[dim]* critical: failure stops later phases[/dim]")


@cli.command(name="agents")
@click.pass_context
def list_agents(ctx):
    """List registered agents and their dependencies."""
    config = ctx.obj["config"]

    table = Table(title="Registered Agents")
    table.add_column("Agent", style="bold")
    table.add_column("Depends on")
    table.add_column("Optional")
    table.add_column("Produces")
    table.add_column("Timeout (s)", justify="right")
    for descriptor in get_registry().descriptors():
        table.add_row(
            descriptor.name,
            ", ".join(sorted(descriptor.dependencies)) or "-",
            ", ".join(sorted(descriptor.optional_dependencies)) or "-",
            descriptor.produces,
            f"{config.timeout_for(descriptor.name):g}",
        )
    console.print(table)


if __name__ == "__main__":
    cli()

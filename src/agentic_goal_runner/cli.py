"""CLI entrypoint for the goal runner."""

import asyncio
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from agentic_goal_runner.config import ConfigError, load_config
from agentic_goal_runner.constants import (
    DEFAULT_REPORTS_DIR,
    GPT_MODEL_NAMES,
    MAX_LOOPS_RANGE,
    MAX_TOKENS_RANGE,
    TEMPERATURE_RANGE,
)
from agentic_goal_runner.model_client import TaskProviderError
from agentic_goal_runner.models import HALTED_ERROR, Message, ModelSettings, Session

# Load .env file on CLI startup
load_dotenv()


def format_message(message: Message) -> str:
    """One console line per event."""
    prefix = f"[loop {message.loop_number}] {message.type.upper()}"
    if message.info:
        prefix = f"{prefix} ({message.info})"
    return f"{prefix}: {message.value}" if message.value else prefix


@click.group()
@click.version_option(package_name="agentic-goal-runner")
def cli():
    """Goal runner - autonomous task loop against a language model."""
    pass


@cli.command()
@click.option("--goal", "goal_text", default=None, help="Goal for the agent.")
@click.option(
    "--goal-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML or JSON goal definition.",
)
@click.option("--name", default=None, help="Run name (default: from goal file or 'agent').")
@click.option(
    "--api-key",
    envvar="GOAL_RUNNER_CUSTOM_API_KEY",
    default=None,
    help="Your own model API key. Without it the intermediary service is used.",
)
@click.option("--model", type=click.Choice(GPT_MODEL_NAMES), default=None, help="Model name.")
@click.option(
    "--temperature",
    type=click.FloatRange(*TEMPERATURE_RANGE),
    default=None,
    help="Sampling temperature.",
)
@click.option(
    "--max-loops",
    type=click.IntRange(*MAX_LOOPS_RANGE),
    default=None,
    help="Loop budget (custom API key only).",
)
@click.option(
    "--max-tokens",
    type=click.IntRange(*MAX_TOKENS_RANGE),
    default=None,
    help="Max tokens per model call.",
)
@click.option("--subscription-id", default=None, help="Paid subscription id (raises the loop budget).")
@click.option("--graph/--no-graph", default=False, help="Drive the run through the LangGraph harness.")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_REPORTS_DIR,
    show_default=True,
    help="Directory for run reports.",
)
def run(
    goal_text: Optional[str],
    goal_file: Optional[Path],
    name: Optional[str],
    api_key: Optional[str],
    model: Optional[str],
    temperature: Optional[float],
    max_loops: Optional[int],
    max_tokens: Optional[int],
    subscription_id: Optional[str],
    graph: bool,
    output_dir: Path,
):
    """Run the agent on a goal until it finishes, runs out of loops, or is stopped."""
    from agentic_goal_runner.run_runner import load_goal_definition, run_goal

    if bool(goal_text) == bool(goal_file):
        click.echo("Error: pass exactly one of --goal or --goal-file.", err=True)
        raise SystemExit(1)

    try:
        definition = load_goal_definition(goal_file) if goal_file else {"goal": goal_text}
        config = load_config()

        settings = dict(definition.get("model_settings") or {})
        overrides = {
            "custom_api_key": api_key or None,
            "custom_model_name": model,
            "custom_temperature": temperature,
            "custom_max_loops": max_loops,
            "max_tokens": max_tokens,
        }
        settings.update({k: v for k, v in overrides.items() if v is not None})
        model_settings = ModelSettings.from_dict(settings)
    except (ValueError, ConfigError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    subscription_id = subscription_id or definition.get("subscription_id")
    session = Session(user_id="cli", subscription_id=subscription_id) if subscription_id else None

    try:
        controller, report_path = asyncio.run(run_goal(
            definition["goal"],
            name=name or definition.get("name") or "agent",
            model_settings=model_settings,
            session=session,
            config=config,
            on_message=lambda m: click.echo(format_message(m)),
            use_graph=graph,
            output_dir=output_dir,
        ))
    except TaskProviderError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo()
    click.echo("Run finished.")
    click.echo(f"  State: {controller.state}")
    click.echo(f"  Loops: {controller.num_loops}/{controller.loop_budget()}")
    click.echo(f"  Completed tasks: {len(controller.completed_tasks)}")
    click.echo(f"  Report: {report_path}")

    if controller.state == HALTED_ERROR:
        raise SystemExit(1)


@cli.command()
def check_config():
    """Check if the environment is configured for mediated runs."""
    try:
        config = load_config(require_all=True)
        click.echo("Configuration loaded successfully!")
        click.echo(f"  GOAL_RUNNER_API_URL: {config.agent_api_url}")
        click.echo(f"  OPENAI_API_BASE: {config.openai_api_base}")
        click.echo(f"  Mock mode: {'on' if config.mock_mode_enabled else 'off'}")
        click.echo(f"  Pacing: task={config.task_delay}s step={config.step_delay}s")
    except ConfigError as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)


@cli.command()
@click.option("--run-id", default=None, help="Run id (or prefix) to show.")
@click.option(
    "--reports-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_REPORTS_DIR,
    show_default=True,
)
def summary(run_id: Optional[str], reports_dir: Path):
    """Summarize the latest run (or a given run) from its report."""
    from agentic_goal_runner.observe import print_summary

    print_summary(reports_dir=reports_dir, run_id=run_id)


if __name__ == "__main__":
    cli()

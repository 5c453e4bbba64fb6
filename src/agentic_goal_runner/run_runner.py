"""Thin runner around one goal run.

Loads a goal definition, runs the controller, writes a report.
"""

import asyncio
import json
import signal
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple

import yaml

from agentic_goal_runner.config import Config, load_config
from agentic_goal_runner.constants import DEFAULT_REPORTS_DIR
from agentic_goal_runner.model_client import TaskProvider
from agentic_goal_runner.models import Message, ModelSettings, RunSnapshot, Session
from agentic_goal_runner.run_controller import AgentRunController


def load_goal_definition(goal_file: Path) -> dict:
    """
    Load a goal definition from YAML or JSON.

    Required fields:
        - goal: str

    Optional fields:
        - name: str
        - model_settings: dict (custom_api_key, custom_model_name,
          custom_temperature, custom_max_loops, max_tokens)
        - subscription_id: str
    """
    content = goal_file.read_text()

    if goal_file.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(content)
    elif goal_file.suffix == ".json":
        data = json.loads(content)
    else:
        raise ValueError(f"Unsupported file type: {goal_file.suffix}. Use .yaml, .yml, or .json")

    if not isinstance(data, dict):
        raise ValueError("Goal definition must be a mapping")
    if not data.get("goal"):
        raise ValueError("Goal definition missing required field: goal")

    return data


@contextmanager
def stop_on_signals(controller: AgentRunController) -> Iterator[None]:
    """Route SIGINT/SIGTERM to controller.stop() for the duration of a run."""
    if not hasattr(signal, "SIGINT"):
        yield
        return

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _handler(signum: int, _: object) -> None:
        controller.stop()

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
        installed = True
    except ValueError:
        # Signal handlers can only be installed in main thread.
        installed = False

    try:
        yield
    finally:
        if installed:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)


def write_run_report(
    snapshot: RunSnapshot,
    events: List[Message],
    output_dir: Path,
    start_time: datetime,
    end_time: datetime,
) -> Path:
    """
    Write a structured run report to disk.

    Report format: JSON with the final run snapshot and every event.
    Filename: {name}_{run_id[:8]}_{timestamp}.json
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = end_time.strftime("%Y%m%d_%H%M%S")
    safe_name = "".join(c if c.isalnum() or c in "-_" else "-" for c in snapshot.name) or "run"
    report_path = output_dir / f"{safe_name}_{snapshot.run_id[:8]}_{timestamp}.json"

    report = {
        **asdict(snapshot),
        "events": [event.to_dict() for event in events],
        "start_time": start_time.isoformat(),
        "end_time": end_time.isoformat(),
        "duration_seconds": (end_time - start_time).total_seconds(),
    }

    report_path.write_text(json.dumps(report, indent=2))

    return report_path


async def run_goal(
    goal: str,
    name: str = "agent",
    model_settings: Optional[ModelSettings] = None,
    session: Optional[Session] = None,
    config: Optional[Config] = None,
    provider: Optional[TaskProvider] = None,
    on_message: Optional[Callable[[Message], None]] = None,
    use_graph: bool = False,
    output_dir: Optional[Path] = None,
) -> Tuple[AgentRunController, Path]:
    """
    Main entry point: build a controller, run it to a halt, write a report.

    Args:
        goal: The goal for the run
        name: Run name (used in the report filename)
        model_settings: Caller model settings (default: no custom key)
        session: Optional session; a subscription raises the loop budget
        config: Configuration (default: loaded from environment)
        provider: Task provider (default: chosen from the settings)
        on_message: Called with each event as it is emitted
        use_graph: If True, drive the run through the LangGraph harness
        output_dir: Directory for run reports (default: ./runs/reports/)

    Returns:
        (halted controller, path of the written report)
    """
    if config is None:
        config = load_config()
    if model_settings is None:
        model_settings = ModelSettings()
    if output_dir is None:
        output_dir = Path(DEFAULT_REPORTS_DIR)

    events: List[Message] = []

    def render(message: Message) -> None:
        events.append(message)
        if on_message is not None:
            on_message(message)

    controller = AgentRunController(
        name=name,
        goal=goal,
        render_message=render,
        shutdown=lambda: None,
        model_settings=model_settings,
        session=session,
        provider=provider,
        config=config,
    )

    start_time = datetime.now()

    with stop_on_signals(controller):
        if use_graph:
            from agentic_goal_runner.run_graph import run_run_graph
            await run_run_graph(controller)
        else:
            await controller.start()

    end_time = datetime.now()

    report_path = write_run_report(
        snapshot=controller.snapshot(),
        events=events,
        output_dir=output_dir,
        start_time=start_time,
        end_time=end_time,
    )
    return controller, report_path


def run_goal_sync(goal: str, **kwargs) -> Tuple[AgentRunController, Path]:
    """Blocking wrapper around run_goal()."""
    return asyncio.run(run_goal(goal, **kwargs))

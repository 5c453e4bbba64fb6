"""Minimal observation surface for goal runs.

Read-only. Works off the JSON reports written by run_runner.
"""

import json
from pathlib import Path
from typing import List, Optional

from agentic_goal_runner.constants import DEFAULT_REPORTS_DIR
from agentic_goal_runner.models import HALTED_SUCCESS, Message, parse_message


def find_reports(reports_dir: Path, run_id: Optional[str] = None) -> List[dict]:
    """Find run reports, optionally only those for a run id (prefix match)."""
    reports = []

    if not reports_dir.exists():
        return reports

    for f in reports_dir.glob("*.json"):
        try:
            data = json.loads(f.read_text())
        except (json.JSONDecodeError, IOError):
            continue
        if not isinstance(data, dict) or "run_id" not in data:
            continue
        if run_id and not str(data["run_id"]).startswith(run_id):
            continue
        data["_report_file"] = str(f)
        reports.append(data)

    # Most recent first
    reports.sort(key=lambda r: r.get("start_time", ""), reverse=True)
    return reports


def load_events(report: dict) -> List[Message]:
    """Events of a report; entries that fail validation are skipped."""
    events = []
    for raw in report.get("events", []):
        try:
            events.append(parse_message(raw))
        except ValueError:
            continue
    return events


def format_duration(seconds: float) -> str:
    """Format duration in human-readable form."""
    if seconds < 1:
        return f"{seconds*1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    else:
        mins = int(seconds // 60)
        secs = seconds % 60
        return f"{mins}m {secs:.0f}s"


def print_summary(
    reports_dir: Optional[Path] = None,
    run_id: Optional[str] = None,
) -> None:
    """Print a human-readable summary of the latest (or the given) run."""
    if reports_dir is None:
        reports_dir = Path(DEFAULT_REPORTS_DIR)

    reports = find_reports(reports_dir, run_id=run_id)

    print("=" * 60)
    print(f"RUN SUMMARY{': ' + run_id if run_id else ''}")
    print("=" * 60)
    print()

    if not reports:
        print("No run reports found.")
        print(f"Searched: {reports_dir}")
        return

    latest = reports[0]
    events = load_events(latest)

    print("LATEST RUN")
    print("-" * 40)
    print(f"  Name:        {latest.get('name', '')}")
    print(f"  Run id:      {latest['run_id']}")
    print(f"  Goal:        {latest.get('goal', '')[:60]}")
    print(f"  State:       {latest.get('state')}")
    print(f"  Loops:       {latest.get('num_loops', 0)}/{latest.get('loop_budget', '?')}")
    print(f"  Duration:    {format_duration(latest.get('duration_seconds', 0.0))}")
    print(f"  Time:        {latest.get('start_time', '')[:19]}")
    print()

    completed = latest.get("completed_tasks", [])
    if completed:
        print("  Completed tasks:")
        for task in completed:
            print(f"    ✓ {task[:60]}")
        print()

    pending = latest.get("tasks", [])
    if pending:
        print("  Remaining tasks:")
        for task in pending[:5]:
            print(f"    · {task[:60]}")
        if len(pending) > 5:
            print(f"    ... and {len(pending) - 5} more")
        print()

    system_events = [e for e in events if e.type == "system"]
    if system_events:
        print(f"  Last system message: {system_events[-1].value[:80]}")
        print()

    if len(reports) > 1:
        print("HISTORY")
        print("-" * 40)
        for r in reports[1:6]:
            icon = "✓" if r.get("state") == HALTED_SUCCESS else "✗"
            print(f"    {icon} {r.get('start_time', '')[:16]} - {r.get('state')}")
        if len(reports) > 6:
            print(f"    ... and {len(reports) - 6} more")
        print()

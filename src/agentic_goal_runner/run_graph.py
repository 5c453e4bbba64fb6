"""LangGraph wrapper for the run controller - trace harness only.

Each controller step is a node so a run is visible step by step in LangGraph
Studio. NO new orchestration logic: the nodes call the controller's own steps
and the edges follow the controller's state.
"""

from typing import Any, Optional
from typing_extensions import TypedDict

from langgraph.graph import StateGraph, END

from agentic_goal_runner.models import EXECUTING, EXPANDING, HALTED_STATES
from agentic_goal_runner.run_controller import AgentRunController


class RunGraphState(TypedDict):
    """State for the run graph - mirrors the controller's counters."""
    run_id: str
    phase: str
    num_loops: int
    pending_count: int
    completed_count: int
    # Controller reference (passed through state)
    controller: Any


def controller_to_dict(controller: AgentRunController) -> dict:
    """Counters to publish after a node ran."""
    return {
        "phase": controller.state,
        "num_loops": controller.num_loops,
        "pending_count": len(controller.tasks),
        "completed_count": len(controller.completed_tasks),
    }


# --- Graph Nodes ---

async def node_bootstrap(state: RunGraphState) -> dict:
    """Emit the goal and queue the initial tasks."""
    controller = state["controller"]
    await controller.advance()
    return controller_to_dict(controller)


async def node_execute(state: RunGraphState) -> dict:
    """Take the next task (or halt on empty queue / spent budget)."""
    controller = state["controller"]
    await controller.advance()
    return controller_to_dict(controller)


async def node_expand(state: RunGraphState) -> dict:
    """Ask for follow-on tasks and merge them into the queue."""
    controller = state["controller"]
    await controller.advance()
    return controller_to_dict(controller)


# --- Conditional Edges ---

def next_node(state: RunGraphState) -> str:
    """Route on the controller's state after a node."""
    phase = state["phase"]
    if phase in HALTED_STATES:
        return "end"
    if phase == EXPANDING:
        return "expand"
    if phase == EXECUTING:
        return "execute"
    return "end"


# --- Graph Builder ---

def build_run_graph() -> StateGraph:
    """
    Build the run graph.

    Flow:
        bootstrap -> (halted?) -> end
                  -> execute -> (halted?) -> end
                             -> expand -> execute ...
    """
    graph = StateGraph(RunGraphState)

    graph.add_node("bootstrap", node_bootstrap)
    graph.add_node("execute", node_execute)
    graph.add_node("expand", node_expand)

    graph.set_entry_point("bootstrap")

    routes = {"end": END, "execute": "execute", "expand": "expand"}
    graph.add_conditional_edges("bootstrap", next_node, routes)
    graph.add_conditional_edges("execute", next_node, routes)
    graph.add_conditional_edges("expand", next_node, routes)

    return graph


def recursion_limit_for(controller: AgentRunController) -> int:
    # Two nodes per iteration, plus bootstrap and the final halting execute
    return 2 * (controller.loop_budget() + 1) + 4


async def run_run_graph(
    controller: AgentRunController,
    recursion_limit: Optional[int] = None,
) -> str:
    """
    Run the controller through the graph and return its final state.

    This is the traced equivalent of AgentRunController.start().
    """
    if not controller.begin():
        return controller.state

    compiled = build_run_graph().compile()

    initial_state: RunGraphState = {
        "run_id": controller.run_id,
        "controller": controller,
        **controller_to_dict(controller),
    }

    await compiled.ainvoke(
        initial_state,
        config={"recursion_limit": recursion_limit or recursion_limit_for(controller)},
    )
    return controller.state


# Pre-compiled graph for Studio discovery
run_graph = build_run_graph().compile()

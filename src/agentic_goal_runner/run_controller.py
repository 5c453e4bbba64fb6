"""Agent run controller - turns a goal into a queue of tasks and works it down.

One run is driven as an explicit state machine:

    BOOTSTRAPPING -> EXECUTING <-> EXPANDING
                         |
                         +-> HALTED_SUCCESS | HALTED_BUDGET | HALTED_ERROR

`stop()` moves any live run to HALTED_MANUAL. Every step method is awaitable on
its own so `run_graph` can drive the same steps as LangGraph nodes.
"""

import asyncio
from dataclasses import replace
from typing import Callable, List, Optional
from uuid import uuid4

from agentic_goal_runner.config import Config
from agentic_goal_runner.constants import (
    DEFAULT_MAX_LOOPS_CUSTOM_API_KEY,
    DEFAULT_MAX_LOOPS_FREE,
    DEFAULT_MAX_LOOPS_PAID,
)
from agentic_goal_runner.messages import (
    ALL_TASKS_COMPLETED,
    MANUAL_SHUTDOWN,
    TASK_MARKED_COMPLETE,
    classify_bootstrap_error,
    classify_execution_error,
    classify_expansion_error,
    execution_info,
    loop_limit_message,
)
from agentic_goal_runner.model_client import TaskProvider, select_task_provider
from agentic_goal_runner.models import (
    BOOTSTRAPPING,
    EXECUTING,
    EXPANDING,
    HALTED_BUDGET,
    HALTED_ERROR,
    HALTED_MANUAL,
    HALTED_STATES,
    HALTED_SUCCESS,
    IDLE,
    Message,
    ModelSettings,
    RunSnapshot,
    Session,
)


RenderMessage = Callable[[Message], None]
Shutdown = Callable[[], None]


def compute_loop_budget(
    model_settings: ModelSettings,
    session: Optional[Session] = None,
) -> int:
    """
    Maximum number of iterations a run may execute.

    A custom API key gets the caller's override (or the custom-key default);
    otherwise a paid session gets the paid default and everyone else the free
    default.
    """
    if model_settings.has_custom_api_key:
        return model_settings.custom_max_loops or DEFAULT_MAX_LOOPS_CUSTOM_API_KEY

    if session is not None and session.is_privileged:
        return DEFAULT_MAX_LOOPS_PAID
    return DEFAULT_MAX_LOOPS_FREE


class AgentRunController:
    """Owns one run: goal, pending queue, completed history, loop counter."""

    def __init__(
        self,
        name: str,
        goal: str,
        render_message: RenderMessage,
        shutdown: Shutdown,
        model_settings: ModelSettings,
        session: Optional[Session] = None,
        provider: Optional[TaskProvider] = None,
        config: Optional[Config] = None,
    ):
        self.name = name
        self._goal = goal
        self.render_message = render_message
        self.shutdown = shutdown
        self.model_settings = model_settings
        self.session = session
        self.config = config or Config()
        self.provider = provider or select_task_provider(model_settings, self.config)

        self.run_id = str(uuid4())
        self.tasks: List[str] = []
        self.completed_tasks: List[str] = []
        self.num_loops = 0
        self.is_running = True
        self.state = IDLE

        # Hand-off between EXECUTING and EXPANDING; cleared after each expand
        self._current_task: Optional[str] = None
        self._last_result: Optional[str] = None

        self._steps = {
            BOOTSTRAPPING: self.bootstrap,
            EXECUTING: self.execute_next,
            EXPANDING: self.expand,
        }

    @property
    def goal(self) -> str:
        return self._goal

    @property
    def is_halted(self) -> bool:
        return self.state in HALTED_STATES

    def loop_budget(self) -> int:
        # Recomputed on every call; settings or session may change mid-run
        return compute_loop_budget(self.model_settings, self.session)

    # -------------------------------------------------------------------------
    # Driving routine
    # -------------------------------------------------------------------------

    def begin(self) -> bool:
        """Move an idle run to BOOTSTRAPPING. False if it was stopped before starting."""
        if self.is_halted:
            return False
        if self.state != IDLE:
            raise RuntimeError(f"Run {self.run_id} has already started")
        self.state = BOOTSTRAPPING
        return True

    async def start(self) -> str:
        """Run from bootstrap to a halted state and return that state."""
        if not self.begin():
            return self.state
        return await self.run_loop()

    async def run_loop(self) -> str:
        while self.is_running and not self.is_halted:
            await self.advance()
        return self.state

    async def advance(self) -> str:
        """Run the step for the current state once and move to the next state."""
        if not self.is_running:
            return self.state

        next_state = await self._steps[self.state]()

        # A stop() may have landed while the step was suspended
        if not self.is_halted:
            self.state = next_state
        return self.state

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def bootstrap(self) -> str:
        self._send_goal_message()
        self._send_thinking_message(self.goal)

        try:
            if not self.config.mock_mode_enabled:
                await self.provider.check_connection(self.model_settings)
            initial_tasks = await self.provider.propose_initial_tasks(
                self.model_settings, self.goal
            )
        except Exception as e:
            self._debug(f"initial tasks failed: {e!r}")
            self._send_error_message(classify_bootstrap_error(e))
            return self._halt(HALTED_ERROR)

        for task in self.merge_tasks(initial_tasks):
            await self._pause(self.config.task_delay)
            if not self.is_running:
                break
            self._send_task_message(task)

        return EXECUTING

    async def execute_next(self) -> str:
        self._debug(f"loop {self.num_loops} pending={self.tasks}")

        if not self.tasks:
            self._send_completed_message()
            return self._halt(HALTED_SUCCESS)

        self.num_loops += 1
        if self.num_loops > self.loop_budget():
            self._send_loop_message()
            return self._halt(HALTED_BUDGET)

        await self._pause(self.config.step_delay)
        if not self.is_running:
            return self.state

        # Reserve before executing so a failed task is never proposed again
        task = self.tasks.pop(0)
        self.completed_tasks.append(task)
        self._send_thinking_message(task)

        try:
            result = await self.provider.execute_task(self.model_settings, self.goal, task)
        except Exception as e:
            self._debug(f"execute failed for {task!r}: {e!r}")
            self._send_error_message(classify_execution_error(e))
            return self._halt(HALTED_ERROR)

        self._send_execution_message(task, result)
        self._current_task = task
        self._last_result = result
        return EXPANDING

    async def expand(self) -> str:
        task, result = self._current_task, self._last_result
        self._current_task = None
        self._last_result = None

        await self._pause(self.config.step_delay)
        if not self.is_running:
            return self.state

        try:
            candidates = await self.provider.propose_additional_tasks(
                self.model_settings,
                self.goal,
                list(self.tasks),
                task or "",
                result or "",
                list(self.completed_tasks),
            )
            self._debug(f"candidates (before)={candidates}")
            new_tasks = self.merge_tasks(candidates)
            self._debug(f"candidates (after)={new_tasks}")
        except Exception as e:
            self._debug(f"additional tasks failed: {e!r}")
            for error_message in classify_expansion_error(e):
                self._send_error_message(error_message)
            self._send_action_message(TASK_MARKED_COMPLETE)
            return EXECUTING

        for new_task in new_tasks:
            await self._pause(self.config.task_delay)
            if not self.is_running:
                break
            self._send_task_message(new_task)

        return EXECUTING

    def merge_tasks(self, candidates: List[str]) -> List[str]:
        """
        Append candidates that are neither pending nor completed.

        Exact string match; provider order is kept. A candidate repeated
        within the same batch is added once.

        Returns:
            The tasks actually appended, in order
        """
        added = []
        for task in candidates:
            if task in self.tasks or task in self.completed_tasks:
                continue
            self.tasks.append(task)
            added.append(task)
        return added

    # -------------------------------------------------------------------------
    # Stop / halt
    # -------------------------------------------------------------------------

    def stop(self) -> None:
        """Manual shutdown. A second call is a no-op."""
        if not self.is_running:
            return
        self._send_manual_shutdown_message()
        self._halt(HALTED_MANUAL)

    def _halt(self, state: str) -> str:
        self.state = state
        self.is_running = False
        self.shutdown()
        return state

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            run_id=self.run_id,
            name=self.name,
            goal=self.goal,
            state=self.state,
            num_loops=self.num_loops,
            loop_budget=self.loop_budget(),
            tasks=list(self.tasks),
            completed_tasks=list(self.completed_tasks),
        )

    def _debug(self, text: str) -> None:
        if self.config.debug:
            print(f"[DEBUG] run={self.run_id[:8]} {text}")

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def emit(self, message: Message) -> None:
        """Forward a message to the sink, stamped with the current loop number.

        Dropped once the run is no longer running.
        """
        if not self.is_running:
            return
        self.render_message(replace(message, loop_number=self.num_loops))

    def _send_goal_message(self) -> None:
        self.emit(Message(type="goal", value=self.goal))

    def _send_thinking_message(self, value: str) -> None:
        self.emit(Message(type="thinking", value=value))

    def _send_task_message(self, task: str) -> None:
        self.emit(Message(type="task", value=task))

    def _send_execution_message(self, task: str, result: str) -> None:
        self.emit(Message(type="action", info=execution_info(task), value=result))

    def _send_action_message(self, info: str) -> None:
        self.emit(Message(type="action", info=info, value=""))

    def _send_error_message(self, error: str) -> None:
        self.emit(Message(type="system", value=error))

    def _send_completed_message(self) -> None:
        self.emit(Message(type="system", value=ALL_TASKS_COMPLETED))

    def _send_loop_message(self) -> None:
        self.emit(Message(
            type="system",
            value=loop_limit_message(self.model_settings.has_custom_api_key),
        ))

    def _send_manual_shutdown_message(self) -> None:
        self.emit(Message(type="system", value=MANUAL_SHUTDOWN))

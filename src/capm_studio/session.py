"""
Workspace Session

The single owner of a workspace's state: project tree, output log, running
flag, conversation history, interactive plan and generation progress.
Collaborators dispatch intents through the methods below and read the
projections; nothing else mutates the state.
"""

import asyncio
import inspect
import json
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Set, Union

from . import path_resolver
from .command_simulator import CommandSimulator
from .config import StudioConfig
from .error_detector import ErrorDetector, build_resolution_prompt
from .interactive_plan import InteractivePlan, PlanError
from .models import (
    INTERACTIVE_PLAN_SENTINEL,
    ConversationMessage,
    ConversationMode,
    GenerationProgress,
    GenerationRequest,
    OutputLog,
    Role,
    RunState,
)
from .orchestrator import GenerationOrchestrator
from .response_parser import extract_file_specs, extract_interactive_plan
from .session_logger import SessionLogger
from .templates import DEFAULT_ACTIVE_FILE, DEFAULT_TEMPLATE, STARTUP_OUTPUT, generate_project_structure, welcome_message
from .tree_engine import ProjectTree

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = "Sorry, I encountered an error while generating the response. Please try again."

AssistantPayload = Union[str, dict, InteractivePlan]
Generator = Callable[[GenerationRequest], Union[AssistantPayload, Awaitable[AssistantPayload]]]
Listener = Callable[[dict], Any]


class WorkspaceSession:
    """
    One interactive project-building workspace.

    Args:
        generator: External generation backend. Called with a GenerationRequest,
            returns (or awaits to) free text, a plan dict or an InteractivePlan.
        config: Studio configuration; pacing and follow-up commands come from here
        project_name: Optional initial project name
    """

    def __init__(self, generator: Optional[Generator] = None,
                 config: Optional[StudioConfig] = None,
                 project_name: Optional[str] = None):
        self.config = config or StudioConfig()
        self.generator = generator
        self.project_name = project_name
        self.has_project = False

        self.tree = ProjectTree()
        self.output = OutputLog()
        self.run_state = RunState()
        self.history: List[ConversationMessage] = []
        self.mode = ConversationMode.AWAITING_PLAN
        self.active_plan: Optional[InteractivePlan] = None
        self.active_file: Optional[str] = None
        self._generator_calls = 0

        self.session_logger = SessionLogger(project_name)
        self.error_detector = ErrorDetector(self.config.max_offered_errors)
        self.simulator = CommandSimulator(
            self.tree, self.output, self.run_state,
            delay_scale=self.config.command_delay_scale,
            notify=self._on_simulator_event,
        )
        self.orchestrator = GenerationOrchestrator(
            self.tree, self.simulator,
            file_delay=(self.config.file_delay_min, self.config.file_delay_max),
            session_logger=self.session_logger,
            notify=self._emit,
        )

        self._listeners: List[Listener] = []
        self._pending_notifications: Set[asyncio.Future] = set()
        self._last_errors: List[str] = []

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    @property
    def progress(self) -> Optional[GenerationProgress]:
        return self.orchestrator.current

    @property
    def is_running(self) -> bool:
        return self.run_state.is_running

    @property
    def is_loading(self) -> bool:
        return self._generator_calls > 0

    @property
    def command_history(self) -> List[str]:
        return list(self.simulator.history)

    def detected_errors(self) -> List[str]:
        return self.error_detector.detect(self.output)

    def to_dict(self) -> dict:
        progress = self.progress
        return {
            "project": self.project_name,
            "hasProject": self.has_project,
            "mode": self.mode.value,
            "files": self.tree.snapshot(),
            "activeFile": self.active_file,
            "isRunning": self.is_running,
            "isLoading": self.is_loading,
            "output": self.output.lines,
            "history": [message.to_dict() for message in self.history],
            "progress": progress.to_dict() if progress else None,
            "plan": self.active_plan.model_dump() if self.active_plan else None,
            "errors": self.detected_errors(),
        }

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for state-change events. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: dict) -> None:
        event = dict(event)
        event.setdefault("timestamp", datetime.now().isoformat())
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    self._schedule(result)
            except Exception:
                logger.exception("Listener failed on %s event", event.get("type"))

    def _schedule(self, awaitable: Awaitable) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.debug("Dropped async notification: no running event loop")
            return
        future = asyncio.ensure_future(awaitable, loop=loop)
        self._pending_notifications.add(future)
        future.add_done_callback(self._notification_done)

    def _notification_done(self, future: asyncio.Future) -> None:
        self._pending_notifications.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("Async listener failed: %s", future.exception())

    def _on_simulator_event(self, event: dict) -> None:
        self._emit(event)
        errors = self.detected_errors()
        if errors != self._last_errors:
            new_errors = [error for error in errors if error not in self._last_errors]
            self._last_errors = errors
            if new_errors:
                self.session_logger.log_detected_errors(new_errors)
            self._emit({"type": "errors", "errors": errors})

    def _emit_tree(self) -> None:
        self._emit({"type": "tree", "tree": self.tree.snapshot()})

    # ------------------------------------------------------------------
    # Project lifecycle
    # ------------------------------------------------------------------

    def create_project(self, name: str, template: str = DEFAULT_TEMPLATE) -> None:
        """Seed the workspace with a starter project and reset the conversation."""
        self.orchestrator.discard()
        self.project_name = name
        self.session_logger.project_name = name
        self.tree.replace_all(generate_project_structure(name, template))
        self.active_file = DEFAULT_ACTIVE_FILE
        self.has_project = True
        self.output.clear()
        self.output.extend(STARTUP_OUTPUT)
        self.history = [ConversationMessage(Role.ASSISTANT, welcome_message(name))]
        self.mode = ConversationMode.AWAITING_PLAN
        self.active_plan = None
        self.run_state.is_running = True
        self._last_errors = []
        self.session_logger.log_info("PROJECT CREATED", {"project": name, "template": template})
        self._emit({"type": "state", "state": self.to_dict()})

    def reset_project(self) -> None:
        """Return the workspace to its initial empty state."""
        self.orchestrator.discard()
        self.project_name = None
        self.has_project = False
        self.tree.replace_all([])
        self.output.clear()
        self.history = []
        self.mode = ConversationMode.AWAITING_PLAN
        self.active_plan = None
        self.active_file = None
        self.run_state.is_running = False
        self._last_errors = []
        self._emit({"type": "state", "state": self.to_dict()})

    # ------------------------------------------------------------------
    # Tree intents (explorer / editor)
    # ------------------------------------------------------------------

    def set_active_file(self, path: str) -> None:
        self.active_file = path_resolver.normalize(path)
        self._emit({"type": "active_file", "path": self.active_file})

    def update_file_content(self, path: str, content: str) -> None:
        self.tree.set_content_at(path, content)
        self._emit_tree()

    def add_file(self, path: str, content: str = "") -> None:
        self.tree.materialize_file(path_resolver.normalize(path), content)
        self._emit_tree()

    def delete_file(self, path: str) -> None:
        path = path_resolver.normalize(path)
        self.tree.delete_at(path)
        if self.active_file and path_resolver.is_within(self.active_file, path):
            self.active_file = None
        self._emit_tree()

    def toggle_folder(self, path: str) -> None:
        self.tree.toggle_folder(path)
        self._emit_tree()

    # ------------------------------------------------------------------
    # Conversation intents
    # ------------------------------------------------------------------

    async def submit(self, text: str) -> Optional[GenerationProgress]:
        """
        Handle a user turn.

        The message is recorded first, then the generation backend is called.
        Returns the generation run's progress when the reply contained files,
        otherwise None.
        """
        text = (text or "").strip()
        if not text:
            return None

        # A new request supersedes any in-flight run
        self.orchestrator.discard()
        self._append_message(Role.USER, text)

        # Only the first user turn may be answered with a plan
        planning = self.mode is ConversationMode.AWAITING_PLAN
        self.mode = ConversationMode.GENERATING

        payload = await self._call_generator(
            text, ConversationMode.AWAITING_PLAN if planning else ConversationMode.GENERATING)
        if payload is None:
            return None
        return await self._handle_payload(payload, planning)

    def toggle_plan_option(self, section_index: int, option_id: str) -> bool:
        if self.active_plan is None:
            raise PlanError("There is no active plan")
        toggled = self.active_plan.toggle(section_index, option_id)
        self._emit({"type": "plan", "plan": self.active_plan.model_dump()})
        return toggled

    async def confirm_plan(self) -> Optional[GenerationProgress]:
        """Turn the selected plan options into a prompt and start generating."""
        if self.active_plan is None:
            raise PlanError("There is no active plan")

        prompt = self.active_plan.to_development_prompt()
        self.active_plan = None
        self.mode = ConversationMode.GENERATING
        self._emit({"type": "plan", "plan": None})
        self.orchestrator.discard()

        payload = await self._call_generator(prompt, ConversationMode.GENERATING)
        if payload is None:
            return None
        return await self._handle_payload(payload, planning=False)

    def dismiss_progress(self) -> None:
        self.orchestrator.discard()

    async def run_command(self, command_line: str) -> None:
        await self.simulator.run(command_line)

    async def resolve_error(self, error_line: str) -> Optional[GenerationProgress]:
        """Send a detected error back to the assistant as an ordinary user turn."""
        return await self.submit(build_resolution_prompt(error_line))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _append_message(self, role: Role, content: str) -> None:
        message = ConversationMessage(role, content)
        self.history.append(message)
        self._emit({"type": "message", "index": len(self.history) - 1, "message": message.to_dict()})

    def _update_last_assistant_message(self, content: str) -> None:
        if self.history and self.history[-1].role is Role.ASSISTANT:
            self.history[-1].content = content
            index = len(self.history) - 1
            self._emit({"type": "message", "index": index, "message": self.history[-1].to_dict()})

    async def _call_generator(self, prompt: str, mode: ConversationMode) -> Optional[AssistantPayload]:
        request = GenerationRequest(
            prompt=prompt,
            mode=mode,
            project_name=self.project_name,
            project_files=self.tree.files(),
        )
        self._generator_calls += 1
        if self._generator_calls == 1:
            self._emit({"type": "loading", "isLoading": True})
        try:
            if self.generator is None:
                raise RuntimeError("No generation backend configured")
            payload = self.generator(request)
            if inspect.isawaitable(payload):
                payload = await payload
            return payload
        except Exception as e:
            self.session_logger.log_generation_failure(e)
            logger.error("Error generating response: %s", e)
            self._append_message(Role.ASSISTANT, APOLOGY_MESSAGE)
            return None
        finally:
            # Overlapping calls keep the flag up until the last one settles
            self._generator_calls -= 1
            if self._generator_calls == 0:
                self._emit({"type": "loading", "isLoading": False})

    async def _handle_payload(self, payload: AssistantPayload, planning: bool) -> Optional[GenerationProgress]:
        if planning:
            plan = extract_interactive_plan(payload)
            if plan is not None:
                self.active_plan = plan
                self._append_message(Role.ASSISTANT, INTERACTIVE_PLAN_SENTINEL)
                self._emit({"type": "plan", "plan": plan.model_dump()})
                return None

        text = self._payload_text(payload)
        self._append_message(Role.ASSISTANT, text)

        specs, summary = extract_file_specs(text)
        if not specs:
            return None

        self._update_last_assistant_message(summary)
        return await self.orchestrator.run_generation(specs, self.config.followup_commands)

    @staticmethod
    def _payload_text(payload: AssistantPayload) -> str:
        if isinstance(payload, InteractivePlan):
            return payload.plan.description or payload.message
        if isinstance(payload, dict):
            return json.dumps(payload, indent=2)
        return str(payload)

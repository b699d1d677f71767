#!/usr/bin/env python3
"""
CAPM Studio
Interactive terminal front end for the CAPM project-building workspace.
"""

import argparse
import asyncio
import logging
import shlex
from typing import Optional

from .config import StudioConfig
from .interactive_plan import InteractivePlan, PlanError
from .llm_client import MultiLLMGenerator
from .models import INTERACTIVE_PLAN_SENTINEL, FileStatus, Role
from .progress_display import LoaderConfig, LoaderStyle, ProgressLoader, render_generation_progress
from .response_parser import extract_file_specs
from .session import WorkspaceSession
from .session_logger import configure_logging
from .templates import DEFAULT_TEMPLATE, TEMPLATES

logger = logging.getLogger(__name__)

FILE_STATUS_ICONS = {
    FileStatus.CREATING.value: "🔄",
    FileStatus.COMPLETE.value: "✅",
}


def format_plan(plan: InteractivePlan) -> str:
    """Render the interactive plan as a numbered checklist."""
    lines = [f"📋 {plan.plan.title}", f"   {plan.plan.description}"]
    for index, section in enumerate(plan.sections):
        lines.append(f"\n  [{index}] {section.emoji} {section.title}")
        for option in section.options:
            mark = "x" if option.selected else " "
            lines.append(f"      [{mark}] {option.id}: {option.label}")
    lines.append("\n💡 'toggle <section> <option>' to change, 'confirm' to start building")
    return "\n".join(lines)


class ConsolePrinter:
    """Session listener that prints state changes to the terminal."""

    def __init__(self, session: WorkspaceSession):
        self.session = session
        self.loader: Optional[ProgressLoader] = None

    def __call__(self, event: dict):
        handler = getattr(self, f"on_{event['type']}", None)
        if handler is not None:
            handler(event)

    def on_loading(self, event: dict):
        if event["isLoading"]:
            self.loader = ProgressLoader(LoaderConfig("🤖 Generating response", LoaderStyle.THINKING))
            self.loader.start()
        elif self.loader is not None:
            self.loader.stop()
            self.loader = None

    def on_message(self, event: dict):
        message = event["message"]
        if message["role"] != Role.ASSISTANT.value or message["content"] == INTERACTIVE_PLAN_SENTINEL:
            return
        # Replies carrying files are reprinted once replaced by their summary
        if extract_file_specs(message["content"]).specs:
            return
        print(f"\n🤖 {message['content']}\n")

    def on_plan(self, event: dict):
        if self.session.active_plan is not None:
            print(format_plan(self.session.active_plan))

    def on_file_status(self, event: dict):
        icon = FILE_STATUS_ICONS.get(event["status"])
        if icon:
            print(f"  {icon} {event['path']}")

    def on_progress(self, event: dict):
        progress = event["progress"]
        if progress and progress["phase"] != "generating":
            print(f"📦 {progress['message']}")
        elif progress and all(f["status"] == "pending" for f in progress["files"]):
            print(f"⚡ {progress['message']}")

    def on_output(self, event: dict):
        if "line" in event:
            print(f"  │ {event['line']}")

    def on_errors(self, event: dict):
        if event["errors"]:
            print(f"\n⚠️  {len(event['errors'])} error(s) detected, type 'errors' to review\n")


def print_help():
    print("Commands:")
    print("  • Describe what you want to build")
    print("  • '$ <command>' to run a terminal command (try '$ help')")
    print("  • 'plan' to show the plan, 'toggle <section> <option>', 'confirm'")
    print("  • 'tree' to show the project, 'cat <path>' to show a file")
    print("  • 'progress' to show the current generation run")
    print("  • 'errors' to list detected errors, 'fix <n>' to ask for a fix")
    print("  • 'history' for terminal command history")
    print("  • 'quit' to exit")
    print()


async def handle_input(session: WorkspaceSession, user_input: str) -> bool:
    """Dispatch one line of REPL input. Returns False when the user wants to quit."""
    lowered = user_input.lower()

    if lowered in ['quit', 'exit', 'q']:
        return False

    if lowered == 'help':
        print_help()
    elif user_input.startswith('$'):
        await session.run_command(user_input[1:].strip())
    elif lowered == 'plan':
        if session.active_plan is None:
            print("📋 No active plan")
        else:
            print(format_plan(session.active_plan))
    elif lowered.startswith('toggle '):
        parts = shlex.split(user_input)
        if len(parts) != 3 or not parts[1].isdigit():
            print("⚠️  Usage: toggle <section> <option>")
        else:
            try:
                if not session.toggle_plan_option(int(parts[1]), parts[2]):
                    print(f"⚠️  No option '{parts[2]}' in section {parts[1]}")
            except PlanError as e:
                print(f"❌ {e}")
    elif lowered == 'confirm':
        try:
            await session.confirm_plan()
        except PlanError as e:
            print(f"❌ {e}")
    elif lowered == 'tree':
        await session.run_command('tree')
    elif lowered.startswith('cat '):
        await session.run_command(user_input)
    elif lowered == 'progress':
        print(render_generation_progress(session.progress) or "📭 No generation in progress")
    elif lowered == 'errors':
        errors = session.detected_errors()
        if not errors:
            print("✅ No errors detected")
        for index, error in enumerate(errors, 1):
            print(f"  {index}. {error}")
    elif lowered.startswith('fix'):
        errors = session.detected_errors()
        parts = user_input.split()
        index = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else 1
        if not 1 <= index <= len(errors):
            print("⚠️  No such error, type 'errors' to list them")
        else:
            await session.resolve_error(errors[index - 1])
    elif lowered == 'history':
        for command in session.command_history:
            print(f"  $ {command}")
    else:
        await session.submit(user_input)
    return True


async def interactive_loop(session: WorkspaceSession):
    print("🎯 CAPM Studio - Interactive Mode")
    print("=" * 50)
    print(f"📁 Project: {session.project_name}")
    print()
    print_help()

    for message in session.history:
        print(f"🤖 {message.content}\n")

    while True:
        try:
            user_input = (await asyncio.to_thread(input, "💡 Command or request: ")).strip()
        except (KeyboardInterrupt, EOFError):
            print("\n👋 Goodbye!")
            break

        if not user_input:
            print("⚠️  Please enter a command or request")
            continue

        if not await handle_input(session, user_input):
            print("👋 Goodbye!")
            break
        print("\n" + "=" * 50)


def main():
    parser = argparse.ArgumentParser(description='CAPM Studio - build SAP CAPM projects with AI assistance')
    parser.add_argument('-n', '--name', type=str, default='my-capm-app', help='Project name')
    parser.add_argument('-t', '--template', type=str, default=DEFAULT_TEMPLATE, choices=sorted(TEMPLATES),
                        help='Starter template')
    parser.add_argument('--web', action='store_true', help='Start the web interface instead of the terminal REPL')
    parser.add_argument('--host', type=str, help='Web interface host (overrides STUDIO_HOST)')
    parser.add_argument('-p', '--port', type=int, help='Web interface port (overrides STUDIO_PORT)')
    parser.add_argument('--instant', action='store_true', help='Disable pacing of file creation and commands')

    args = parser.parse_args()

    config = StudioConfig.from_env()
    if args.instant:
        config.file_delay_min = config.file_delay_max = 0.0
        config.command_delay_scale = 0.0
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port

    configure_logging(config.log_level, config.log_file)

    try:
        generator = MultiLLMGenerator(config)
        if not generator.available_providers:
            print("⚠️  No LLM API key found, generation requests will fail")

        session = WorkspaceSession(generator=generator, config=config)

        if args.web:
            from .webapp.start_web import start_server
            session.create_project(args.name, args.template)
            start_server(config, session=session)
            return

        session.create_project(args.name, args.template)
        session.subscribe(ConsolePrinter(session))
        asyncio.run(interactive_loop(session))

    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        logger.exception("Fatal error")
        print(f"❌ Fatal error: {str(e)}")


if __name__ == "__main__":
    main()

"""
Command Simulator

Interprets a small, fixed vocabulary of shell-like commands against the
project tree. Nothing is executed: read commands inspect the tree, install /
start / build / deploy commands write paced informational lines and, for
start and watch, flip the shared running flag.
"""

import asyncio
import logging
import shlex
from typing import Awaitable, Callable, Dict, List, Optional

from . import path_resolver
from .error_detector import FAILURE_GLYPH
from .models import FileSystemNode, OutputLog, RunState
from .tree_engine import ProjectTree

logger = logging.getLogger(__name__)

WORKING_DIRECTORY = "/home/project"
SERVER_URL = "http://localhost:4004"

HELP_TEXT = """Available commands:
  help                 - Show this help message
  ls [path]            - List files and directories
  cat <file>           - Display file contents
  npm install          - Install project dependencies
  npm start            - Start the CAPM application
  npm run watch        - Start in watch mode
  npm run build        - Build the application
  npm run deploy       - Deploy to SAP BTP
  cds version          - Show CDS version
  cds watch            - Start CDS in watch mode
  cds deploy           - Deploy database schema
  clear                - Clear terminal
  pwd                  - Show current directory
  tree                 - Show project structure"""


def format_listing(nodes: List[FileSystemNode]) -> str:
    """One-line listing, folders suffixed with ``/``."""
    return "  ".join(f"{node.name}/" if node.is_folder else node.name for node in nodes)


def render_tree(nodes: List[FileSystemNode], prefix: str = "") -> str:
    """Render nodes as an indented tree with box-drawing connectors."""
    lines = []
    for index, node in enumerate(nodes):
        is_last = index == len(nodes) - 1
        connector = "└── " if is_last else "├── "
        icon = "📁 " if node.is_folder else "📄 "
        lines.append(f"{prefix}{connector}{icon}{node.name}")
        if node.children:
            child_prefix = prefix + ("    " if is_last else "│   ")
            lines.append(render_tree(node.children, child_prefix))
    return "\n".join(lines)


class CommandSimulator:
    """
    Runs terminal commands against a workspace's tree, output log and run state.

    Args:
        tree: Project tree consulted by read commands
        output: Output log every command writes to
        run_state: Shared running flag
        delay_scale: Multiplier for the paced pauses between sub-steps (0 disables pacing)
        notify: Optional callback receiving change events (``output``, ``running``)
    """

    def __init__(self, tree: ProjectTree, output: OutputLog, run_state: RunState,
                 delay_scale: float = 1.0, notify: Optional[Callable[[dict], None]] = None):
        self.tree = tree
        self.output = output
        self.run_state = run_state
        self.delay_scale = delay_scale
        self.notify = notify
        self.history: List[str] = []

        self.commands: Dict[str, Callable[[List[str]], Awaitable[None]]] = {
            "help": self._help,
            "ls": self._ls,
            "cat": self._cat,
            "pwd": self._pwd,
            "tree": self._tree,
            "clear": self._clear,
            "npm": self._npm,
            "cds": self._cds,
        }

    async def run(self, command_line: str) -> None:
        """Echo ``command_line`` to the log and execute it."""
        command_line = command_line.strip()
        if not command_line:
            return

        self.history.append(command_line)
        self._write(f"$ {command_line}")
        await self._pause(0.1)

        try:
            args = shlex.split(command_line)
        except ValueError:
            args = command_line.split()
        if not args:
            return

        cmd = args[0].lower()
        handler = self.commands.get(cmd)
        if handler is None:
            logger.debug("Unknown command: %s", cmd)
            self._error(f"bash: {cmd}: command not found")
            return
        await handler(args)

    # ------------------------------------------------------------------
    # Read commands
    # ------------------------------------------------------------------

    async def _help(self, args: List[str]) -> None:
        self._write(HELP_TEXT)

    async def _ls(self, args: List[str]) -> None:
        if len(args) < 2:
            self._write(format_listing(self.tree.roots))
            return
        target = path_resolver.resolve_cli_path(args[1])
        children = self.tree.children_of(target)
        if children is not None:
            self._write(format_listing(children))
            return
        node = self.tree.find_by_path(target)
        if node is not None:
            self._write(node.name)
        else:
            self._error(f"ls: cannot access '{args[1]}': No such file or directory")

    async def _cat(self, args: List[str]) -> None:
        if len(args) < 2:
            self._error("cat: missing file operand")
            return
        node = self.tree.find_by_path(path_resolver.normalize(args[1]))
        if node is None or not node.is_file:
            self._error(f"cat: {args[1]}: No such file or directory")
            return
        self._write(node.content or "(empty file)")

    async def _pwd(self, args: List[str]) -> None:
        self._write(WORKING_DIRECTORY)

    async def _tree(self, args: List[str]) -> None:
        self._write(render_tree(self.tree.roots) or "(empty project)")

    async def _clear(self, args: List[str]) -> None:
        self.output.clear()
        self._emit({"type": "output", "cleared": True})

    # ------------------------------------------------------------------
    # Run commands
    # ------------------------------------------------------------------

    async def _npm(self, args: List[str]) -> None:
        sub = [arg.lower() for arg in args[1:]]
        if sub[:1] in (["install"], ["i"]):
            await self._install()
        elif sub[:1] == ["start"]:
            await self._start()
        elif sub[:2] == ["run", "watch"]:
            await self._watch("👀 Starting in watch mode...", "✅ Watching for file changes...")
        elif sub[:2] == ["run", "build"]:
            await self._build()
        elif sub[:2] == ["run", "deploy"]:
            await self._deploy()
        else:
            self._error(f"npm: unknown command '{' '.join(args[1:])}'")

    async def _cds(self, args: List[str]) -> None:
        sub = args[1].lower() if len(args) > 1 else ""
        if sub == "version":
            self._write("@sap/cds: 7.4.0")
            self._write("@sap/cds-dk: 7.4.0")
            self._write("Node.js: v18.17.0")
        elif sub == "watch":
            await self._watch("👀 CDS watching for changes...", f"✅ Server ready at {SERVER_URL}")
        elif sub == "deploy":
            self._write("🗄️  Deploying database schema...")
            await self._pause(1.5)
            self._write("✅ Database schema deployed successfully")
        else:
            self._error(f"cds: unknown command '{sub}'")

    async def _install(self) -> None:
        self._write("📦 Installing dependencies...")
        await self._pause(1.5)
        self._write("✅ Dependencies installed successfully")
        self._write("Added 247 packages in 12.3s")

    async def _start(self) -> None:
        self._write("🚀 Starting CAPM application...")
        await self._pause(1.0)
        self._write("📦 Loading CDS configuration...")
        await self._pause(0.8)
        self._write("🗄️  Connecting to database...")
        await self._pause(0.6)
        self._write(f"✅ Server started on {SERVER_URL}")
        self._write("📊 Service endpoints:")
        self._write("  - /odata/v4/main/ (OData API)")
        self._write("  - /$metadata (Service metadata)")
        self._set_running(True)

    async def _watch(self, starting: str, ready: str) -> None:
        self._write(starting)
        await self._pause(1.0)
        self._write(ready)
        self._set_running(True)

    async def _build(self) -> None:
        self._write("🔨 Building application...")
        await self._pause(2.0)
        self._write("✅ Build completed successfully")
        self._write("📁 Output written to ./dist/")

    async def _deploy(self) -> None:
        self._write("☁️  Deploying to SAP BTP...")
        await self._pause(2.0)
        self._write("✅ Deployment completed successfully")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _pause(self, seconds: float) -> None:
        # Always yields, even with pacing disabled
        await asyncio.sleep(seconds * self.delay_scale if self.delay_scale > 0 else 0)

    def _write(self, line: str) -> None:
        self.output.append(line)
        self._emit({"type": "output", "line": line})

    def _error(self, line: str) -> None:
        self._write(f"{FAILURE_GLYPH} {line}")

    def _set_running(self, value: bool) -> None:
        if self.run_state.is_running != value:
            self.run_state.is_running = value
            self._emit({"type": "running", "isRunning": value})

    def _emit(self, event: dict) -> None:
        if self.notify is not None:
            self.notify(event)

"""
CAPM Studio Web Interface
FastAPI server exposing a workspace session over REST, with state-change
events pushed to every connected WebSocket client.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from .. import __version__
from ..interactive_plan import PlanError
from ..session import WorkspaceSession
from ..templates import DEFAULT_TEMPLATE, TEMPLATES

logger = logging.getLogger(__name__)


# Pydantic models for API requests
class CreateProjectRequest(BaseModel):
    name: str
    template: str = DEFAULT_TEMPLATE

class SubmitMessageRequest(BaseModel):
    message: str

class TerminalCommandRequest(BaseModel):
    command: str

class TogglePlanOptionRequest(BaseModel):
    section_index: int
    option_id: str

class ResolveErrorRequest(BaseModel):
    error: str

class UpdateFileRequest(BaseModel):
    path: str
    content: str

class PathRequest(BaseModel):
    path: str


ACCEPTED = {"accepted": True}


def create_app(session: Optional[WorkspaceSession] = None) -> FastAPI:
    """
    Build the FastAPI app around one workspace session.

    Long-running intents are scheduled as background tasks (kept in
    ``app.state.tasks`` until they finish) and answered with 202.
    """
    app = FastAPI(title="CAPM Studio", description="Web interface for the CAPM project-building workspace",
                  version=__version__)
    app.state.session = session or WorkspaceSession()
    app.state.tasks = set()
    connected_websockets: List[WebSocket] = []

    async def broadcast_message(message: Dict):
        """Broadcast message to all connected WebSocket clients."""
        for websocket in connected_websockets.copy():
            try:
                await websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug("Dropping WebSocket client: %s", e)
                if websocket in connected_websockets:
                    connected_websockets.remove(websocket)

    app.state.broadcast = broadcast_message
    app.state.session.subscribe(broadcast_message)

    def get_session() -> WorkspaceSession:
        return app.state.session

    def run_in_background(coro) -> None:
        task = asyncio.create_task(coro)
        app.state.tasks.add(task)
        task.add_done_callback(_task_done)

    def _task_done(task: asyncio.Task) -> None:
        app.state.tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background intent failed: %s", task.exception())

    @app.get("/")
    async def read_root():
        return {"name": "CAPM Studio", "version": __version__, "project": get_session().project_name}

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    @app.get("/api/state")
    async def get_state():
        return get_session().to_dict()

    @app.get("/api/tree")
    async def get_tree():
        return {"files": get_session().tree.snapshot()}

    @app.get("/api/files")
    async def get_file(path: str):
        node = get_session().tree.find_by_path(path)
        if node is None or not node.is_file:
            raise HTTPException(status_code=404, detail=f"File not found: {path}")
        return {"path": node.path, "name": node.name, "content": node.content or ""}

    @app.get("/api/progress")
    async def get_progress():
        progress = get_session().progress
        return {"progress": progress.to_dict() if progress else None}

    @app.get("/api/history")
    async def get_history():
        return {"messages": [message.to_dict() for message in get_session().history]}

    @app.get("/api/output")
    async def get_output():
        session = get_session()
        return {"lines": session.output.lines, "isRunning": session.is_running,
                "commandHistory": session.command_history}

    @app.get("/api/errors")
    async def get_errors():
        return {"errors": get_session().detected_errors()}

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    @app.post("/api/project")
    async def create_project(request: CreateProjectRequest):
        if request.template not in TEMPLATES:
            raise HTTPException(status_code=400, detail=f"Unknown template: {request.template}")
        name = request.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Project name is required")
        session = get_session()
        session.create_project(name, request.template)
        return session.to_dict()

    @app.post("/api/messages", status_code=202)
    async def submit_message(request: SubmitMessageRequest):
        if not request.message.strip():
            raise HTTPException(status_code=400, detail="Message is empty")
        run_in_background(get_session().submit(request.message))
        return ACCEPTED

    @app.post("/api/terminal", status_code=202)
    async def run_terminal_command(request: TerminalCommandRequest):
        if not request.command.strip():
            raise HTTPException(status_code=400, detail="Command is empty")
        run_in_background(get_session().run_command(request.command))
        return ACCEPTED

    @app.post("/api/plan/toggle")
    async def toggle_plan_option(request: TogglePlanOptionRequest):
        session = get_session()
        if session.active_plan is None:
            raise HTTPException(status_code=409, detail="There is no active plan")
        try:
            toggled = session.toggle_plan_option(request.section_index, request.option_id)
        except PlanError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"toggled": toggled, "plan": session.active_plan.model_dump()}

    @app.post("/api/plan/confirm", status_code=202)
    async def confirm_plan():
        session = get_session()
        if session.active_plan is None:
            raise HTTPException(status_code=409, detail="There is no active plan")
        run_in_background(session.confirm_plan())
        return ACCEPTED

    @app.post("/api/errors/resolve", status_code=202)
    async def resolve_error(request: ResolveErrorRequest):
        if not request.error.strip():
            raise HTTPException(status_code=400, detail="Error line is empty")
        run_in_background(get_session().resolve_error(request.error))
        return ACCEPTED

    @app.put("/api/files")
    async def update_file(request: UpdateFileRequest):
        session = get_session()
        node = session.tree.find_by_path(request.path)
        if node is None or not node.is_file:
            raise HTTPException(status_code=404, detail=f"File not found: {request.path}")
        session.update_file_content(request.path, request.content)
        return {"path": node.path, "content": node.content}

    @app.delete("/api/files")
    async def delete_file(path: str):
        session = get_session()
        if session.tree.find_by_path(path) is None:
            raise HTTPException(status_code=404, detail=f"Path not found: {path}")
        session.delete_file(path)
        return {"deleted": path}

    @app.post("/api/folders/toggle")
    async def toggle_folder(request: PathRequest):
        session = get_session()
        node = session.tree.find_by_path(request.path)
        if node is None or not node.is_folder:
            raise HTTPException(status_code=404, detail=f"Folder not found: {request.path}")
        session.toggle_folder(request.path)
        return {"path": node.path, "isExpanded": node.is_expanded}

    @app.post("/api/active-file")
    async def set_active_file(request: PathRequest):
        session = get_session()
        node = session.tree.find_by_path(request.path)
        if node is None or not node.is_file:
            raise HTTPException(status_code=404, detail=f"File not found: {request.path}")
        session.set_active_file(request.path)
        return {"activeFile": session.active_file}

    # ------------------------------------------------------------------
    # Real-time channel
    # ------------------------------------------------------------------

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket endpoint for real-time communication."""
        await websocket.accept()
        connected_websockets.append(websocket)

        await websocket.send_json({
            "type": "state",
            "state": get_session().to_dict(),
            "timestamp": datetime.now().isoformat()
        })

        try:
            while True:
                data = await websocket.receive_json()
                kind = data.get("type", "message")
                if kind == "message" and data.get("message", "").strip():
                    run_in_background(get_session().submit(data["message"]))
                elif kind == "command" and data.get("command", "").strip():
                    run_in_background(get_session().run_command(data["command"]))
                else:
                    await websocket.send_json({
                        "type": "error",
                        "message": f"Unsupported request: {kind}",
                        "timestamp": datetime.now().isoformat()
                    })
        except WebSocketDisconnect:
            if websocket in connected_websockets:
                connected_websockets.remove(websocket)

    return app

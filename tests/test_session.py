import asyncio

import pytest

from capm_studio.interactive_plan import PlanError, build_planning_response
from capm_studio.models import INTERACTIVE_PLAN_SENTINEL, ConversationMode, Phase, Role
from capm_studio.session import APOLOGY_MESSAGE, WorkspaceSession


def test_create_project_seeds_workspace(project_session):
    session = project_session
    assert session.has_project
    assert session.project_name == "Bookshop"
    assert session.active_file == "/db/schema.cds"
    assert session.is_running is True
    assert [node.path for node in session.tree.roots] == ["/db", "/srv", "/package.json", "/README.md"]
    assert session.history[0].role is Role.ASSISTANT
    assert 'Welcome to your new CAPM project "Bookshop"' in session.history[0].content
    assert session.output.lines[-1] == "✅ Application started on http://localhost:4004"
    assert session.mode is ConversationMode.AWAITING_PLAN


def test_empty_template_and_package_name(session):
    session.create_project("Sales Orders", "empty")
    assert '"name": "sales-orders"' in session.tree.find_by_path("/package.json").content
    assert session.tree.find_by_path("/db/schema.cds").content.startswith("namespace sales.orders;")
    assert "Define your entities here" in session.tree.find_by_path("/db/schema.cds").content


def test_reset_project(project_session):
    project_session.reset_project()
    assert project_session.has_project is False
    assert len(project_session.tree) == 0
    assert project_session.history == []
    assert project_session.output.lines == []
    assert project_session.is_running is False


@pytest.mark.asyncio
async def test_first_turn_yields_plan(project_session, generator):
    generator.queue(build_planning_response("a bookshop"))
    result = await project_session.submit("a bookshop")

    assert result is None
    assert project_session.history[-2].role is Role.USER
    assert project_session.history[-2].content == "a bookshop"
    assert project_session.history[-1].content == INTERACTIVE_PLAN_SENTINEL
    assert project_session.history[-1].is_plan
    assert project_session.active_plan is not None
    assert project_session.mode is ConversationMode.GENERATING
    assert generator.requests[0].is_first_turn
    assert "/db/schema.cds" in generator.requests[0].project_files


@pytest.mark.asyncio
async def test_follow_up_after_plan_goes_to_backend(project_session, generator, bookshop_response):
    generator.queue(build_planning_response("a bookshop"), "Authors added to the plan.", bookshop_response)
    await project_session.submit("a bookshop")
    await project_session.submit("actually add authors too")

    assert generator.requests[1].mode is ConversationMode.GENERATING
    assert not generator.requests[1].is_first_turn
    contents = [m.content for m in project_session.history]
    assert contents.count(INTERACTIVE_PLAN_SENTINEL) == 1
    assert contents[-1] == "Authors added to the plan."

    # The plan from the first turn can still be confirmed
    assert project_session.active_plan is not None
    progress = await project_session.confirm_plan()
    assert progress.phase is Phase.COMPLETE
    assert generator.requests[2].mode is ConversationMode.GENERATING


@pytest.mark.asyncio
async def test_failed_first_turn_still_ends_planning_stage(project_session, generator):
    generator.queue(RuntimeError("boom"), build_planning_response("again").model_dump())
    await project_session.submit("first")
    await project_session.submit("second")

    assert generator.requests[1].mode is ConversationMode.GENERATING
    assert project_session.active_plan is None
    assert project_session.history[-1].content != INTERACTIVE_PLAN_SENTINEL


@pytest.mark.asyncio
async def test_plan_from_json_text(project_session, generator):
    generator.queue(build_planning_response("x").model_dump_json())
    await project_session.submit("x")
    assert project_session.active_plan is not None


@pytest.mark.asyncio
async def test_confirm_plan_generates(project_session, generator, bookshop_response):
    generator.queue(build_planning_response("a bookshop"), bookshop_response)
    await project_session.submit("a bookshop")
    project_session.toggle_plan_option(2, "auth")

    progress = await project_session.confirm_plan()

    confirm_request = generator.requests[-1]
    assert confirm_request.mode is ConversationMode.GENERATING
    assert "Authentication and authorization" in confirm_request.prompt
    assert confirm_request.prompt.endswith("Build: a bookshop")
    # Confirmation is not recorded as a user turn
    assert [m.role for m in project_session.history].count(Role.USER) == 1

    assert progress.phase is Phase.COMPLETE
    assert project_session.progress is progress
    assert project_session.active_plan is None
    assert project_session.mode is ConversationMode.GENERATING
    assert project_session.tree.find_by_path("/srv/cat-service.cds") is not None
    assert project_session.history[-1].content.endswith("✅ **Generated 2 files** for your application.")
    assert "```" not in project_session.history[-1].content
    assert "$ npm install" in project_session.output.lines


@pytest.mark.asyncio
async def test_plain_first_payload_switches_mode(project_session, generator):
    generator.queue("Sure, what entities do you need?")
    result = await project_session.submit("hello")

    assert result is None
    assert project_session.mode is ConversationMode.GENERATING
    assert project_session.history[-1].content == "Sure, what entities do you need?"
    assert project_session.progress is None


@pytest.mark.asyncio
async def test_plan_json_after_planning_stage_is_plain_text(project_session, generator):
    generator.queue("ok", build_planning_response("again").model_dump())
    await project_session.submit("first")
    await project_session.submit("second")
    assert project_session.active_plan is None
    assert '"interactive-plan"' in project_session.history[-1].content


@pytest.mark.asyncio
async def test_upstream_failure_appends_apology(project_session, generator):
    generator.queue(RuntimeError("boom"))
    result = await project_session.submit("build it")

    assert result is None
    assert project_session.history[-1].role is Role.ASSISTANT
    assert project_session.history[-1].content == APOLOGY_MESSAGE
    assert project_session.progress is None
    assert project_session.is_loading is False


@pytest.mark.asyncio
async def test_missing_backend_apologizes(instant_config):
    session = WorkspaceSession(config=instant_config)
    await session.submit("anything")
    assert session.history[-1].content == APOLOGY_MESSAGE


@pytest.mark.asyncio
async def test_sync_generator_is_supported(instant_config):
    session = WorkspaceSession(generator=lambda request: "plain reply", config=instant_config)
    await session.submit("hi")
    assert session.history[-1].content == "plain reply"


@pytest.mark.asyncio
async def test_blank_input_is_ignored(project_session, generator):
    before = len(project_session.history)
    assert await project_session.submit("   ") is None
    assert len(project_session.history) == before
    assert generator.requests == []


def test_plan_intents_without_plan_raise(project_session):
    with pytest.raises(PlanError):
        project_session.toggle_plan_option(0, "auth")
    with pytest.raises(PlanError):
        asyncio.run(project_session.confirm_plan())


@pytest.mark.asyncio
async def test_new_submit_supersedes_running_generation(generator, bookshop_response):
    from capm_studio.config import StudioConfig

    session = WorkspaceSession(generator=generator, config=StudioConfig.instant(file_delay_min=0.05, file_delay_max=0.05))
    session.create_project("Bookshop")
    generator.queue(bookshop_response, "Nothing to build this time.")

    first = asyncio.create_task(session.submit("build"))
    await asyncio.sleep(0.01)
    await session.submit("stop")
    stale = await first

    assert stale.phase is Phase.GENERATING
    assert session.progress is None
    assert session.tree.find_by_path("/srv/cat-service.cds") is None


@pytest.mark.asyncio
async def test_commands_and_error_resolution(project_session, generator, recorded_events):
    await project_session.run_command("foo")
    errors = project_session.detected_errors()
    assert errors == ["✘ bash: foo: command not found"]
    assert any(e["type"] == "errors" and e["errors"] == errors for e in recorded_events)
    assert project_session.command_history == ["foo"]

    generator.queue("Install it first.")
    await project_session.resolve_error(errors[0])
    assert project_session.history[-2].role is Role.USER
    assert project_session.history[-2].content.startswith("I'm getting this error in my CAPM project:")
    assert generator.requests[-1].prompt == project_session.history[-2].content


def test_tree_intents(project_session, recorded_events):
    project_session.update_file_content("/README.md", "# Bookshop")
    assert project_session.tree.find_by_path("/README.md").content == "# Bookshop"

    project_session.add_file("srv/admin.cds", "service Admin {}")
    assert project_session.tree.find_by_path("/srv/admin.cds").content == "service Admin {}"

    project_session.toggle_folder("/srv")
    assert project_session.tree.find_by_path("/srv").is_expanded is False

    project_session.delete_file("/db")
    assert "/db/schema.cds" not in project_session.tree
    assert project_session.active_file is None

    project_session.set_active_file("srv/admin.cds")
    assert project_session.active_file == "/srv/admin.cds"

    assert [e["type"] for e in recorded_events].count("tree") == 4


def test_dismiss_progress_without_run(project_session):
    project_session.dismiss_progress()
    assert project_session.progress is None


@pytest.mark.asyncio
async def test_events_are_emitted(project_session, generator, recorded_events, bookshop_response):
    project_session.run_state.is_running = False
    generator.queue(bookshop_response)
    await project_session.submit("bookshop")

    types = {event["type"] for event in recorded_events}
    assert {"message", "loading", "progress", "file_status", "tree", "output", "running"} <= types
    assert all("timestamp" in event for event in recorded_events)


@pytest.mark.asyncio
async def test_async_listener_and_failing_listener(project_session):
    received = []

    async def async_listener(event):
        received.append(event["type"])

    def broken_listener(event):
        raise ValueError("listener bug")

    project_session.subscribe(broken_listener)
    unsubscribe = project_session.subscribe(async_listener)
    await project_session.run_command("pwd")
    await asyncio.sleep(0)
    assert "output" in received

    unsubscribe()
    received.clear()
    await project_session.run_command("pwd")
    await asyncio.sleep(0)
    assert received == []


def test_to_dict(project_session):
    state = project_session.to_dict()
    assert state["project"] == "Bookshop"
    assert state["mode"] == "awaiting_plan"
    assert state["activeFile"] == "/db/schema.cds"
    assert state["progress"] is None
    assert state["plan"] is None
    assert state["files"][0]["path"] == "/db"


@pytest.mark.asyncio
async def test_loading_stays_up_while_any_call_is_pending(project_session, recorded_events):
    gates = [asyncio.Event(), asyncio.Event()]
    requests = []

    async def slow_generator(request):
        gate = gates[len(requests)]
        requests.append(request)
        await gate.wait()
        return "done"

    project_session.generator = slow_generator
    first = asyncio.create_task(project_session.submit("one"))
    second = asyncio.create_task(project_session.submit("two"))
    while len(requests) < 2:
        await asyncio.sleep(0)
    assert project_session.is_loading

    gates[0].set()
    await first
    assert project_session.is_loading
    assert project_session.to_dict()["isLoading"] is True

    gates[1].set()
    await second
    assert project_session.is_loading is False
    loading = [event["isLoading"] for event in recorded_events if event["type"] == "loading"]
    assert loading == [True, False]

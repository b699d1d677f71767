import pytest

from capm_studio.interactive_plan import build_planning_response
from capm_studio.main import ConsolePrinter, format_plan, handle_input


def test_format_plan_marks_selection():
    text = format_plan(build_planning_response("shop"))
    assert "[0] 🔧 Backend Components" in text
    assert "[x] entities: Database entities and relationships" in text
    assert "[ ] auth: Authentication and authorization" in text


@pytest.mark.asyncio
async def test_quit(project_session):
    assert await handle_input(project_session, "quit") is False
    assert await handle_input(project_session, "EXIT") is False


@pytest.mark.asyncio
async def test_terminal_passthrough(project_session):
    assert await handle_input(project_session, "$ pwd") is True
    assert project_session.output.lines[-2:] == ["$ pwd", "/home/project"]


@pytest.mark.asyncio
async def test_plan_commands(project_session, generator, bookshop_response, capsys):
    generator.queue(build_planning_response("shop"), bookshop_response)
    await handle_input(project_session, "a shop")
    await handle_input(project_session, "toggle 2 auth")
    await handle_input(project_session, "toggle 2 nothing")
    assert "No option 'nothing' in section 2" in capsys.readouterr().out

    await handle_input(project_session, "confirm")
    assert "Authentication and authorization" in generator.requests[-1].prompt
    assert "/db/schema.cds" in project_session.tree

    await handle_input(project_session, "confirm")
    assert "There is no active plan" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_errors_and_fix(project_session, generator, capsys):
    await handle_input(project_session, "$ bogus")
    await handle_input(project_session, "errors")
    assert "1. ✘ bash: bogus: command not found" in capsys.readouterr().out

    await handle_input(project_session, "fix 4")
    assert "No such error" in capsys.readouterr().out

    generator.queue("Here is a fix.")
    await handle_input(project_session, "fix 1")
    assert project_session.history[-1].content == "Here is a fix."


@pytest.mark.asyncio
async def test_history_and_progress(project_session, capsys):
    await handle_input(project_session, "$ ls")
    await handle_input(project_session, "history")
    await handle_input(project_session, "progress")
    out = capsys.readouterr().out
    assert "$ ls" in out
    assert "No generation in progress" in out


def test_console_printer_prints_summary_not_raw_reply(project_session, capsys, bookshop_response):
    printer = ConsolePrinter(project_session)
    printer({"type": "message", "message": {"role": "assistant", "content": bookshop_response}})
    assert capsys.readouterr().out == ""

    printer({"type": "message", "message": {"role": "assistant", "content": "All done"}})
    printer({"type": "file_status", "path": "/db/schema.cds", "status": "complete"})
    printer({"type": "output", "line": "$ npm start"})
    out = capsys.readouterr().out
    assert "🤖 All done" in out
    assert "✅ /db/schema.cds" in out
    assert "│ $ npm start" in out

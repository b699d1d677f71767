import io

from capm_studio.models import FileStatus, GenerationProgress, PendingFile, Phase
from capm_studio.progress_display import LoaderStyle, llm_progress, render_generation_progress, show_progress


def make_progress(phase=Phase.GENERATING):
    return GenerationProgress(
        phase=phase,
        pending_files=[
            PendingFile("/db/schema.cds", "x", FileStatus.COMPLETE),
            PendingFile("/srv/service.cds", "y", FileStatus.CREATING),
            PendingFile("/README.md", "z"),
        ],
        commands=["npm install"],
        message="Creating 3 files...",
    )


def test_render_none():
    assert render_generation_progress(None) == ""


def test_render_generating():
    text = render_generation_progress(make_progress())
    lines = text.splitlines()
    assert lines[0] == "⚡ Generating files (1/3 files)"
    assert lines[1] == "   Creating 3 files..."
    assert lines[2:] == ["   ✅ /db/schema.cds", "   🔄 /srv/service.cds", "   ⏳ /README.md"]


def test_render_installing_lists_commands():
    text = render_generation_progress(make_progress(Phase.INSTALLING))
    assert text.splitlines()[0].startswith("📦 Installing")
    assert "     $ npm install" in text


def test_spinner_writes_and_clears():
    stream = io.StringIO()
    with show_progress("Working", LoaderStyle.DOTS, stream=stream) as loader:
        loader.update_task("Still working")
    assert loader.is_running is False
    assert stream.getvalue().endswith("\r")


def test_llm_progress_context():
    stream = io.StringIO()
    with llm_progress("Claude", stream=stream) as loader:
        assert loader.is_running
        assert "Claude" in loader.config.task_name
    assert not loader.is_running

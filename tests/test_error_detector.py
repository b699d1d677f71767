from capm_studio.error_detector import ErrorDetector, build_resolution_prompt, is_error_line
from capm_studio.models import OutputLog


def test_detects_error_line():
    assert ErrorDetector().detect(["Build succeeded", "ERROR: missing module X"]) == ["ERROR: missing module X"]


def test_empty_log():
    assert ErrorDetector().detect([]) == []


def test_signatures():
    assert is_error_line("Deployment FAILED")
    assert is_error_line("cannot find module '@sap/cds'")
    assert is_error_line("✘ bash: foo: command not found")
    assert not is_error_line("✅ Server started on http://localhost:4004")


def test_offers_most_recent_three_oldest_first():
    log = OutputLog(["error 1", "ok", "error 2", "error 3", "fine", "error 4"])
    assert ErrorDetector().detect(log) == ["error 2", "error 3", "error 4"]
    assert ErrorDetector(max_offered=1).detect(log) == ["error 4"]
    assert ErrorDetector(max_offered=0).detect(log) == []


def test_resolution_prompt_wraps_line():
    prompt = build_resolution_prompt("ERROR: missing module X")
    assert prompt.startswith("I'm getting this error in my CAPM project:")
    assert "\n\nERROR: missing module X\n\n" in prompt

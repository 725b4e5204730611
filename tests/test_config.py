import json

import pytest

from gebrai.applet import render_applet_page
from gebrai.config import GeoGebraServerConfig, PoolConfig, SessionTimeouts
from gebrai.data_classes import CommandResult, ExportArtifact, GeoGebraConfig, ToolResult
from gebrai.errors import CommandExecutionError, ExportError, McpErrorCode, ToolNotFoundError
from gebrai.session import ASSIGNMENT_LABEL, _decode_png


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MAX_INSTANCES", "5")
    monkeypatch.setenv("MAX_IDLE_TIME", "1500")
    monkeypatch.setenv("HEADLESS", "false")
    monkeypatch.setenv("RETRY_DELAY", "250")
    monkeypatch.setenv("PORT", "8090")
    config = GeoGebraServerConfig()
    assert config.pool.max_instances == 5
    assert config.pool.max_idle_time == 1.5
    assert config.pool.headless is False
    assert config.timeouts.retry_delay == 0.25
    assert config.port == 8090


def test_defaults(monkeypatch):
    for name in ["MAX_INSTANCES", "INSTANCE_TIMEOUT", "CLEANUP_INTERVAL", "READY_TIMEOUT", "RETRY_ATTEMPTS"]:
        monkeypatch.delenv(name, raising=False)
    pool = PoolConfig()
    timeouts = SessionTimeouts()
    assert pool.max_instances == 3
    assert pool.instance_timeout == 300
    assert pool.cleanup_interval == 60
    assert timeouts.ready_timeout == 30
    assert timeouts.retry_attempts == 3


def test_env_file_is_loaded(tmp_path, monkeypatch):
    monkeypatch.delenv("EXPORT_DIR", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text(f"EXPORT_DIR={tmp_path / 'renders'}\n")
    try:
        config = GeoGebraServerConfig.from_env(env_file)
    finally:
        monkeypatch.delenv("EXPORT_DIR", raising=False)
    assert config.export_dir == tmp_path / "renders"


def test_applet_page_embeds_parameters():
    html = render_applet_page(GeoGebraConfig(app_name="geometry", width=1024), script_url="http://localhost/deployggb.js")
    assert '<script src="http://localhost/deployggb.js"></script>' in html
    assert json.dumps("geometry") in html
    assert '"width": 1024' in html
    assert '"id": "ggbApplet"' in html


def test_command_result_raises_on_failure():
    assert CommandResult(success=True, result="A = (1, 2)").raise_for_status().result == "A = (1, 2)"
    with pytest.raises(CommandExecutionError) as info:
        CommandResult(success=False, command="Foo(", error="Syntax error").raise_for_status()
    assert info.value.command == "Foo("
    assert info.value.message == "Syntax error"
    assert "command" not in CommandResult(success=True, command="x").model_dump()


def test_error_payloads():
    error = ExportError("png", "All PNG export methods failed", ["full", "scale_only"])
    assert error.message == "All PNG export methods failed (tried: full, scale_only)"
    assert error.to_error_payload()["code"] == int(McpErrorCode.TOOL_EXECUTION_ERROR)
    missing = ToolNotFoundError("teleport")
    assert str(missing) == "Tool not found: teleport"
    assert isinstance(missing, KeyError)


def test_tool_result_envelope():
    result = ToolResult.failure("nope", code=-32602)
    assert result.is_error
    assert result.payload() == {"success": False, "error": "nope", "code": -32602}
    assert ToolResult().payload() == {}


def test_artifact_encodings():
    artifact = ExportArtifact(format="svg", data="<svg>é</svg>".encode("utf-8"))
    assert artifact.to_text() == "<svg>é</svg>"
    assert artifact.mime_type == "image/svg+xml"
    assert ExportArtifact(format="png", data=b"\x89PNG").to_base64() == "iVBORw=="


@pytest.mark.parametrize("command,label", [
    ("A = (1, 2)", "A"),
    ("f(x) = x^2", "f"),
    ("line1: y = 2x + 3", "line1"),
    ("a == b", None),
    ("SetColor(A, \"red\")", None),
])
def test_assignment_labels(command, label):
    match = ASSIGNMENT_LABEL.match(command)
    assert (match.group(1) if match else None) == label


def test_png_payload_decoding():
    assert _decode_png("data:image/png;base64,iVBORw==") == b"\x89PNG"
    assert _decode_png("iVBORw==") == b"\x89PNG"
    assert _decode_png("not base64!") is None
    assert _decode_png("") is None
    assert _decode_png(None) is None

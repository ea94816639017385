from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pytest
import yaml
from typer.testing import CliRunner

from aicompose.cli import DEFAULT_CONFIG_TEMPLATE, app

runner = CliRunner()


def _write_request(tmp_path: Path, data: Dict[str, Any]) -> Path:
    path = tmp_path / "request.yaml"
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


def test_init_writes_default_config(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"

    result = runner.invoke(app, ["init", "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert yaml.safe_load(config_path.read_text(encoding="utf-8")) == DEFAULT_CONFIG_TEMPLATE

    again = runner.invoke(app, ["init", "--config", str(config_path)])
    assert again.exit_code == 1
    assert "already exists" in again.output

    forced = runner.invoke(app, ["init", "--config", str(config_path), "--force"])
    assert forced.exit_code == 0


def test_render_offline_echoes_composed_resources(tmp_path: Path, composition_request) -> None:
    request_path = _write_request(tmp_path, composition_request)
    log_dir = tmp_path / "logs"

    result = runner.invoke(
        app,
        ["render", str(request_path), "--offline", "--timeout", "30", "--log-dir", str(log_dir)],
    )

    assert result.exit_code == 0, result.output
    assert "storage-bucket:" in result.output
    assert "upbound.io/name: storage-bucket" in result.output
    assert list(log_dir.glob("invocation__composition__demo__*.json"))


def test_render_exits_non_zero_on_fatal_result(tmp_path: Path, composition_request) -> None:
    composition_request["credentials"] = {}
    request_path = _write_request(tmp_path, composition_request)

    result = runner.invoke(app, ["render", str(request_path), "--offline"])

    assert result.exit_code == 1
    assert "SEVERITY_FATAL" in result.output
    [message_line] = [line for line in result.output.splitlines() if "credential not found" in line]
    assert "message:" in message_line
    assert 'cannot get ANTHROPIC_API_KEY from credential "claude"' in message_line


def test_render_reads_credential_settings_from_config(tmp_path: Path, composition_request) -> None:
    composition_request["credentials"]["anthropic"] = composition_request["credentials"].pop("claude")
    request_path = _write_request(tmp_path, composition_request)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump({"function": {"credential_name": "anthropic"}}), encoding="utf-8")

    result = runner.invoke(app, ["render", str(request_path), "--offline", "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "ttl: 60s" in result.output


def test_prompt_prints_assembled_prompt(tmp_path: Path, composition_request) -> None:
    request_path = _write_request(tmp_path, composition_request)

    result = runner.invoke(app, ["prompt", str(request_path)])

    assert result.exit_code == 0, result.output
    assert "<composite>" in result.output
    assert "Create a bucket for the composite." in result.output


def test_prompt_reports_missing_input(tmp_path: Path, composition_request) -> None:
    del composition_request["input"]
    request_path = _write_request(tmp_path, composition_request)

    result = runner.invoke(app, ["prompt", str(request_path)])

    assert result.exit_code == 1
    assert "input is required" in result.output


def test_resolve_prints_annotated_stream(tmp_path: Path) -> None:
    reply_path = tmp_path / "reply.txt"
    reply_path.write_text('```json\n{"kind": "Bucket", "metadata": {"name": "test"}}\n```\n', encoding="utf-8")

    result = runner.invoke(app, ["resolve", str(reply_path)])

    assert result.exit_code == 0, result.output
    assert result.output.startswith("---\nkind: Bucket\n")
    assert "upbound.io/name: test" in result.output

    as_json = runner.invoke(app, ["resolve", str(reply_path), "--json"])
    assert '"test"' in as_json.output


def test_resolve_fails_on_unparseable_reply(tmp_path: Path) -> None:
    reply_path = tmp_path / "reply.txt"
    reply_path.write_text("some-response", encoding="utf-8")

    result = runner.invoke(app, ["resolve", str(reply_path)])

    assert result.exit_code == 1
    assert "cannot parse reply" in result.output


def test_tools_lists_configured_servers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCP_SERVER_TOOL_GITHUB_TRANSPORT", "sse")
    monkeypatch.setenv("MCP_SERVER_TOOL_GITHUB_BASEURL", "https://mcp.example.com/sse")

    result = runner.invoke(app, ["tools"])

    assert result.exit_code == 0, result.output
    assert "- github: sse https://mcp.example.com/sse" in result.output

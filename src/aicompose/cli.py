"""CLI commands for rendering, inspecting, and debugging function invocations."""

from __future__ import annotations

import copy
import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml
from pydantic import ValidationError

from .documents import ReplyParseFailure, resolve_reply, serialize_resources
from .function import ComposeFunction, FunctionError, FunctionSettings, RunFunctionRequest
from .function.response import is_fatal
from .models import DEFAULT_MODEL, Agent, AnthropicClient, LLMClient
from .models.agent import ClientFactory
from .tools.servers import ToolServerConfig, ToolServerResolver, describe_servers

APP_HELP = "Delegate composed resource synthesis to a language model."
DEFAULT_CONFIG_NAME = "config.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "models": {
        "default": DEFAULT_MODEL,
        "max_tokens": 1024,
        "temperature": 0.0,
        "timeout": 120,
        "base_url": "https://api.anthropic.com/v1/messages",
    },
    "function": {
        "credential_name": "claude",
        "credential_key": "ANTHROPIC_API_KEY",
        "ttl_seconds": 60,
    },
    "paths": {
        "logs": "",
    },
}


app = typer.Typer(help=APP_HELP)


def _copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _write_config(config_path: Path, config_data: Dict[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(config_data, handle, sort_keys=False)


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    if not config_path.exists():
        raise typer.BadParameter(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        typer.echo(f"Failed to parse config: {error}")
        raise typer.Exit(code=1) from error

    if not isinstance(data, dict):
        typer.echo("Configuration must be a mapping at the top level.")
        raise typer.Exit(code=1)

    return data


def _resolve_config(config: Optional[str]) -> Dict[str, Any]:
    """Merge the optional config file over the default template."""
    merged = _copy_config_template()
    if not config:
        return merged
    for section, values in load_config(Path(config)).items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = values
    return merged


def _load_request(path: Path) -> RunFunctionRequest:
    """Read a YAML or JSON request file."""
    if not path.exists():
        raise typer.BadParameter(f"Request file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as error:
        typer.echo(f"Failed to parse request: {error}")
        raise typer.Exit(code=1) from error
    try:
        return RunFunctionRequest.model_validate(data)
    except ValidationError as error:
        typer.echo(f"Request does not match the function request schema: {error}")
        raise typer.Exit(code=1) from error


def _build_client_factory(
    config: Dict[str, Any],
    *,
    offline: bool,
    tool_servers: list[ToolServerConfig],
) -> ClientFactory:
    """Select either the Messages API client or the offline stub."""
    if offline:
        typer.echo("Using offline stub client.", err=True)
        return lambda _key: _OfflineLLMClient()

    models_cfg = config.get("models") or {}
    model_name = str(models_cfg.get("default") or DEFAULT_MODEL)
    client_kwargs: Dict[str, Any] = {}
    timeout_value = models_cfg.get("timeout")
    if isinstance(timeout_value, (int, float)) and timeout_value > 0:
        client_kwargs["timeout"] = float(timeout_value)
    base_url_value = models_cfg.get("base_url")
    if isinstance(base_url_value, str) and base_url_value.strip():
        client_kwargs["base_url"] = base_url_value.strip()

    def factory(key: str) -> LLMClient:
        return AnthropicClient(api_key=key, model=model_name, tool_servers=tool_servers, **client_kwargs)

    return factory


def _build_function(config: Dict[str, Any], *, offline: bool, log_dir: Optional[str]) -> ComposeFunction:
    models_cfg = config.get("models") or {}
    tool_servers = list(ToolServerResolver().from_environ().values())
    factory = _build_client_factory(config, offline=offline, tool_servers=tool_servers)

    agent_kwargs: Dict[str, Any] = {}
    max_tokens = models_cfg.get("max_tokens")
    if isinstance(max_tokens, int) and max_tokens > 0:
        agent_kwargs["max_tokens"] = max_tokens
    temperature = models_cfg.get("temperature")
    if isinstance(temperature, (int, float)) and temperature >= 0:
        agent_kwargs["temperature"] = float(temperature)

    settings = FunctionSettings.from_config(config)
    if log_dir:
        settings.logs_root = Path(log_dir)
    return ComposeFunction(Agent(factory, **agent_kwargs), settings)


class _OfflineLLMClient(LLMClient):
    """Local stub that echoes the observed composed resources as its reply."""

    _COMPOSED = re.compile(r"<composed>\n?(.*?)</composed>", re.DOTALL)

    def __init__(self) -> None:
        super().__init__("offline")

    def _raw_invoke(self, payload: Dict[str, Any], *, timeout: Optional[float] = None) -> str:
        prompt = ""
        for message in payload.get("messages") or []:
            for item in message.get("content") or []:
                if isinstance(item, dict) and isinstance(item.get("text"), str):
                    prompt += item["text"]
        match = self._COMPOSED.search(prompt)
        if match is None:
            return "Offline client: no analysis performed."
        return f"<output>\n{match.group(1).strip()}\n</output>"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr."),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command()
def init(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path of the configuration file to create.",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write the default configuration file."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Configuration already exists at {config_path}; use --force to overwrite.")
        raise typer.Exit(code=1)
    _write_config(config_path, _copy_config_template())
    typer.echo(f"Created configuration at {config_path}.")


@app.command()
def render(
    request: Path = typer.Argument(..., help="YAML or JSON function request."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to the configuration file."),
    offline: bool = typer.Option(False, "--offline", help="Use the offline stub instead of the Messages API."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds before the invocation is abandoned."),
    log_dir: Optional[str] = typer.Option(None, "--log-dir", help="Directory for invocation logs."),
) -> None:
    """Run the function for a request and print the response."""
    config_data = _resolve_config(config)
    function = _build_function(config_data, offline=offline, log_dir=log_dir)
    deadline = time.monotonic() + timeout if timeout and timeout > 0 else None

    rsp = function.run_function(_load_request(request), deadline=deadline)
    # Unbounded width keeps every result message on one line.
    rendered = yaml.safe_dump(rsp.to_wire(), sort_keys=False, allow_unicode=True, width=float("inf"))
    typer.echo(rendered, nl=False)
    if is_fatal(rsp):
        raise typer.Exit(code=1)


@app.command()
def prompt(
    request: Path = typer.Argument(..., help="YAML or JSON function request."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to the configuration file."),
) -> None:
    """Print the prompt a request would be sent with."""
    config_data = _resolve_config(config)
    function = _build_function(config_data, offline=True, log_dir=None)
    try:
        text = function.render_prompt(_load_request(request))
    except FunctionError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error
    typer.echo(text)


@app.command()
def resolve(
    reply: Path = typer.Argument(..., help="File holding a raw model reply."),
    as_json: bool = typer.Option(False, "--json", help="Print the resource set as JSON."),
) -> None:
    """Resolve a raw model reply into resources and print them."""
    if not reply.exists():
        raise typer.BadParameter(f"Reply file not found: {reply}")
    try:
        resources = resolve_reply(reply.read_text(encoding="utf-8"))
    except ReplyParseFailure as error:
        typer.echo(f"cannot parse reply: {error}")
        raise typer.Exit(code=1) from error
    if as_json:
        typer.echo(json.dumps(resources, indent=2, sort_keys=True))
        return
    typer.echo(serialize_resources(resources), nl=False)


@app.command()
def tools() -> None:
    """List the tool servers discovered from the environment."""
    servers = ToolServerResolver().from_environ()
    if not servers:
        typer.echo("No tool servers configured.")
        return
    for line in describe_servers(servers[name] for name in sorted(servers)):
        typer.echo(f"- {line}")


if __name__ == "__main__":
    app()

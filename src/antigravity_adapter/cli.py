# src/antigravity_adapter/cli.py
"""
Developer CLI.

    antigravity-adapter preview request.json   translate an OpenAI request file
    antigravity-adapter resolve MODEL          show how a model id is routed
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table

from .config import load_config
from .error_handler import ConfigLoadError
from .logging_config import configure_logging
from .model_policy import ModelPolicyResolver
from .translation.request_builder import (
    BoundCredential,
    build_request_body,
    redact_envelope,
)

console = Console()

# Keys of an OpenAI request body forwarded as generation parameters
PARAMETER_KEYS = (
    "temperature",
    "top_p",
    "top_k",
    "max_tokens",
    "max_completion_tokens",
    "thinking_budget",
    "reasoning_effort",
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="antigravity-adapter",
        description="Inspect OpenAI → Antigravity request translation.",
    )
    parser.add_argument("--config", type=Path, help="Path to config.yaml.")
    parser.add_argument("--env", type=Path, help="Path to .env.")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    preview = subparsers.add_parser(
        "preview", help="Print the upstream envelope for a chat-completion request file."
    )
    preview.add_argument("request", type=Path, help="JSON file with an OpenAI request body.")
    preview.add_argument("--project", default="preview-project", help="project field.")
    preview.add_argument("--session", default="preview-session", help="sessionId field.")
    preview.add_argument(
        "--full", action="store_true", help="Do not shorten inline image data."
    )

    resolve = subparsers.add_parser("resolve", help="Show the model policy for a model id.")
    resolve.add_argument("models", nargs="+", help="Client-facing model ids.")

    return parser


def _load_request(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        body = json.load(f)
    if not isinstance(body, dict) or not isinstance(body.get("messages"), list):
        raise ValueError(f"{path} must contain an object with a 'messages' list")
    return body


def run_preview(args: argparse.Namespace) -> int:
    config = load_config(args.config, args.env)
    try:
        body = _load_request(args.request)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Could not read request:[/bold red] {e}")
        return 1

    parameters = {k: body[k] for k in PARAMETER_KEYS if k in body}
    credential = BoundCredential(
        project_id=args.project, session_id=args.session, access_token=""
    )
    envelope, context = build_request_body(
        body["messages"],
        body.get("model", ""),
        parameters,
        body.get("tools"),
        credential,
        config,
        tool_choice=body.get("tool_choice"),
    )

    policy = context.policy
    console.print(
        Panel.fit(
            f"[bold]{policy.client_model}[/bold] → [cyan]{policy.upstream_model}[/cyan]\n"
            f"thinking: {'[green]on' if policy.thinking_enabled else '[dim]off'}[/]\n"
            f"turns: {len(envelope['request']['contents'])}",
            title="Antigravity request",
        )
    )
    shown = envelope if args.full else redact_envelope(envelope)
    console.print(JSON(json.dumps(shown, ensure_ascii=False)))
    return 0


def run_resolve(args: argparse.Namespace) -> int:
    config = load_config(args.config, args.env)
    resolver = ModelPolicyResolver(config.model_aliases, config.thinking_models)

    table = Table(title="Model policy")
    table.add_column("Client model")
    table.add_column("Upstream model", style="cyan")
    table.add_column("Thinking")
    for model in args.models:
        policy = resolver.resolve(model)
        table.add_row(
            policy.client_model,
            policy.upstream_model,
            "yes" if policy.thinking_enabled else "no",
        )
    console.print(table)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(
        console_level=logging.DEBUG if args.debug else logging.WARNING,
        log_to_files=False,
    )

    try:
        if args.command == "preview":
            return run_preview(args)
        return run_resolve(args)
    except ConfigLoadError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())

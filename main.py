#!/usr/bin/env python3
"""main.py

Tool tester for the AI gateway: invoke one tool by name from the command line.

    python main.py <tool> [--param value ...]

Values are parsed as JSON arrays/objects, ``true``/``false``, integers, or
left as strings.  A bare ``--flag`` means ``true``.
"""

from __future__ import annotations

# Standard Library
import asyncio
import inspect
import json
import logging
import sys
import time
from typing import Any, NoReturn

# Third-Party Libraries
from dotenv import load_dotenv
from rich.panel import Panel
from rich.theme import Theme
from rich.console import Console
from rich.markdown import Markdown

# Local Modules
from gateway.settings import get_settings
from gateway.tools import GatewayTools

# Load environment variables from .env file
load_dotenv()

custom_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
    }
)
console = Console(theme=custom_theme)

TOOL_NAMES: tuple[str, ...] = ("ask", "search", "research", "list_models")

HELP_TEXT = """
**Usage:** `python main.py <tool_name> [--param value ...]`

**Examples:**

- `python main.py ask --question "What are the benefits of TypeScript?"`
- `python main.py ask --question "What is Rust?" --model anthropic/claude-sonnet-4.6`
- `python main.py search --query "latest Python release" --include_sources true`
- `python main.py research --query "AI agent frameworks" --synthesize false`
- `python main.py research --query "microservices trade-offs" --mode ask`
- `python main.py research --query "TypeScript features" --models '["openai/gpt-5.2","perplexity/sonar"]'`
- `python main.py list_models --provider openai`

**Available tools:** ask, search, research, list_models
"""


def parse_value(value: str) -> Any:
    """Convert one CLI value to a JSON container, bool, int, or string."""
    if value.startswith(("[", "{")):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    if value == "true":
        return True
    if value == "false":
        return False
    try:
        return int(value)
    except ValueError:
        return value


def parse_args(argv: list[str]) -> tuple[str, dict[str, Any]] | None:
    """Split ``argv`` into the tool name and its keyword arguments."""
    if not argv:
        return None

    tool_name, rest = argv[0], argv[1:]
    params: dict[str, Any] = {}
    i = 0
    while i < len(rest):
        arg = rest[i]
        if arg.startswith("--"):
            key = arg[2:]
            nxt = rest[i + 1] if i + 1 < len(rest) else None
            if nxt is not None and not nxt.startswith("--"):
                params[key] = parse_value(nxt)
                i += 1
            else:
                params[key] = True
        i += 1

    # research --models "a,b"
    if isinstance(params.get("models"), str):
        params["models"] = params["models"].split(",")
    return tool_name, params


def display_help() -> None:
    console.print(Panel(Markdown(HELP_TEXT), title="Tool Tester", border_style="cyan"))


async def run_tool(tools: GatewayTools, tool_name: str, params: dict[str, Any]):
    return await getattr(tools, tool_name)(**params)


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the tool tester."""
    argv = sys.argv[1:] if argv is None else argv
    if "--help" in argv or "-h" in argv:
        display_help()
        sys.exit(0)

    parsed = parse_args(argv)
    if parsed is None:
        display_help()
        sys.exit(1)
    tool_name, params = parsed

    if tool_name not in TOOL_NAMES:
        console.print(f"Unknown tool: {tool_name}", style="error")
        console.print(f"Available tools: {', '.join(TOOL_NAMES)}", style="info")
        sys.exit(1)

    settings = get_settings()
    if tool_name != "list_models" and not settings.ai_gateway_api_key:
        console.print("Error: AI_GATEWAY_API_KEY is not set in .env file", style="error")
        sys.exit(1)

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    console.print(f"\nTesting tool: [bold]{tool_name}[/bold]", style="info")
    console.print(f"Parameters: {json.dumps(params, indent=2, ensure_ascii=False)}", style="info")

    tools = GatewayTools.from_settings(settings)
    try:
        inspect.signature(getattr(tools, tool_name)).bind(**params)
    except TypeError as exc:
        console.print(f"Invalid parameters for {tool_name}: {exc}", style="error")
        sys.exit(1)

    start = time.perf_counter()
    try:
        response = asyncio.run(run_tool(tools, tool_name, params))
    except KeyboardInterrupt:
        console.print("\nInterrupted", style="warning")
        sys.exit(130)
    elapsed = time.perf_counter() - start

    style = "red" if response.is_error else "green"
    subtitle = f"{elapsed:.1f}s"
    if response.sources:
        subtitle += f" | {len(response.sources)} sources"
    console.print(
        Panel(Markdown(response.text), title=tool_name, subtitle=subtitle, border_style=style)
    )
    sys.exit(1 if response.is_error else 0)


if __name__ == "__main__":
    main()

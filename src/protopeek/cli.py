"""Typer CLI for protopeek: decode Protobuf / gRPC payloads without a schema."""

from __future__ import annotations

import logging
import sys
import threading
import tomllib
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from protopeek.config import Settings, load_settings
from protopeek.decoder import SAMPLE_HEX, decode, to_bytes
from protopeek.errors import FormatError, InputTooLargeError
from protopeek.model import ParseResult
from protopeek.views import describe, dump_json, summarize, to_table, to_tree
from protopeek.wire import MAX_DEPTH_LIMIT

app = typer.Typer(
    help="Schema-less Protocol Buffers / gRPC wire-format decoder.",
    add_completion=False,
)

VIEWS = ("tree", "table", "json")


# ── Helpers ────────────────────────────────────────────────────────


def _settings(config: Path | None) -> Settings:
    try:
        return load_settings(config)
    except (OSError, tomllib.TOMLDecodeError) as e:
        typer.secho(f"Error: cannot read config: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


def _read_input(data: str | None, file: Path | None, raw: bool) -> str | bytes:
    """Return text to normalize, or bytes when ``raw`` is set."""
    if file is not None:
        try:
            content = file.read_bytes()
        except OSError as e:
            typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return content if raw else content.decode("utf-8", errors="replace")
    if data is not None and data != "-":
        return data
    if sys.stdin.isatty():
        typer.secho("Error: no input (pass DATA, --file or pipe to stdin)", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    if raw:
        return sys.stdin.buffer.read()
    return sys.stdin.read()


def _content_text(content: list[dict[str, str]]) -> Text:
    text = Text()
    for i, interp in enumerate(content):
        if i:
            text.append("\n")
        text.append(f"{interp['kind']}: ", style="dim")
        style = "green" if interp["kind"] == "string" else "magenta" if interp["kind"] == "bytes" else ""
        text.append(interp["value"], style=style)
    return text


def _rich_table(table: dict[str, Any]) -> Table:
    out = Table(show_header=True, header_style="bold", expand=False)
    out.add_column("Bytes", style="dim", no_wrap=True)
    out.add_column("Field", justify="right", style="cyan")
    out.add_column("Type", style="yellow")
    out.add_column("Content")
    for row in table["rows"]:
        content = _rich_table(row["nested"]) if row["nested"] is not None else _content_text(row["content"])
        out.add_row(row["bytes"], str(row["field"]), row["type"], content)
    return out


def _add_tree_nodes(parent: Tree, nodes: list[dict[str, Any]]) -> None:
    for node in nodes:
        label = f"[bold]Field {node['field']}[/bold] [yellow]{escape(node['type'])}[/yellow]"
        if node["children"]:
            label += f" [cyan]{{{len(node['children'])} fields}}[/cyan]"
        elif node["primary"] is not None:
            value = node["primary"]["value"]
            if node["primary"]["kind"] == "string":
                value = f'"{value}"'
            label += f" {escape(value)}"
        start, end = node["range"]
        label += f" [dim]\\[{start}-{end}][/dim]"
        if node["alternatives"]:
            alt = " | ".join(f"{a['kind']}: {a['value']}" for a in node["alternatives"])
            label += f"\n[dim]{escape(alt)}[/dim]"
        branch = parent.add(label)
        _add_tree_nodes(branch, node["children"])


def _print_result(console: Console, buf: bytes, result: ParseResult, view: str) -> None:
    if view == "json":
        typer.echo(dump_json(result))
        return

    summary = summarize(buf, result)
    if view == "tree":
        tree = Tree(f"[bold cyan]message[/bold cyan] [dim]({len(buf)} bytes)[/dim]")
        _add_tree_nodes(tree, to_tree(result))
        console.print(tree)
    else:
        console.print(_rich_table(to_table(result)))
    if result.trailing:
        console.print(f"[yellow]Unparsed:[/yellow] {result.trailing.hex(' ')}")
    console.print(f"[dim]{describe(summary)}[/dim]")


def _run_decode(
    source: str | bytes,
    settings: Settings,
    view: str,
    output: Path | None,
) -> None:
    if view not in VIEWS:
        typer.secho(f"Unknown view: {view}. Use tree, table, or json.", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    try:
        buf = to_bytes(
            source,
            format=settings.format,
            grpc=settings.grpc,
            max_input_bytes=settings.max_input_bytes,
        )
    except (FormatError, InputTooLargeError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    result = decode(buf, max_depth=settings.max_depth)
    if not result.fields:
        typer.secho("No fields could be parsed; check the input format.", fg=typer.colors.YELLOW, err=True)

    _print_result(Console(), buf, result, view)

    if output is not None:
        output.write_text(dump_json(result) + "\n", encoding="utf-8")
        typer.secho(f"Wrote {output}", fg=typer.colors.GREEN, err=True)


# ── Commands ───────────────────────────────────────────────────────


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log decoder decisions to stderr"),
) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )


@app.command("decode")
def decode_cmd(
    data: Optional[str] = typer.Argument(None, help="Hex or base64 text ('-' or omitted: stdin)"),
    file: Optional[Path] = typer.Option(None, "--file", "-i", help="Read input from a file"),
    raw: bool = typer.Option(False, "--raw", help="Input (file or stdin) is the binary message itself"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Input encoding: auto, hex, base64"),
    grpc: Optional[bool] = typer.Option(None, "--grpc/--no-grpc", help="Skip the 5-byte gRPC frame header"),
    view: str = typer.Option("table", "--view", "-V", help="Output view: tree, table, json"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", "-d", min=0, max=MAX_DEPTH_LIMIT, clamp=True, help="Nested message depth limit"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Also write canonical JSON to a file"),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings TOML (default: ./protopeek.toml)"),
) -> None:
    """Decode a Protobuf message and print its fields."""
    settings = _settings(config).merged(format=format, grpc=grpc, max_depth=max_depth)
    source = _read_input(data, file, raw)
    _run_decode(source, settings, view, output)


@app.command()
def sample(
    view: str = typer.Option("table", "--view", "-V", help="Output view: tree, table, json"),
) -> None:
    """Decode the bundled sample message."""
    _run_decode(SAMPLE_HEX, Settings(format="hex"), view, None)


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to serve on (default 8001)"),
    no_open: bool = typer.Option(False, "--no-open", help="Don't open browser automatically"),
    cors: Optional[bool] = typer.Option(None, "--cors/--no-cors", help="Enable CORS headers for cross-origin access"),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings TOML (default: ./protopeek.toml)"),
) -> None:
    """Start the decoder web page and JSON API."""
    from protopeek import server as _server

    settings = _server.configure(_settings(config).merged(port=port, cors=cors))
    url = f"http://127.0.0.1:{settings.port}"

    typer.echo(f"Serving protopeek at {url}")
    typer.echo(f"  API: POST {url}/api/decode")
    typer.echo(f"  Max input: {settings.max_input_bytes:,} bytes, max depth: {settings.max_depth}")
    if settings.cors:
        typer.echo("  CORS: enabled")
    typer.echo("  Stop: Ctrl+C")

    if not no_open:
        threading.Timer(0.5, _server.open_browser, args=(url,)).start()

    logging.getLogger("protopeek").info("serving on %s", url)
    _server.app.run(host="127.0.0.1", port=settings.port, quiet=True, server="wsgiref")


@app.command("open")
def open_cmd(
    port: int = typer.Option(8001, help="Port of the running server"),
) -> None:
    """Open the decoder page in a browser."""
    from protopeek.server import open_browser

    url = f"http://127.0.0.1:{port}"
    typer.echo(f"Opening {url}")
    open_browser(url)


def main() -> None:
    app()

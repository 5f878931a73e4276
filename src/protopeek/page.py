from __future__ import annotations

import base64
import json
from collections.abc import Iterable
from html import escape as _html_escape
from typing import Any
from urllib.parse import quote as _url_quote

from bottle import SimpleTemplate  # type: ignore

from protopeek import __version__

# --- UI Constants ---
TYPE_COLORS = {
    "varint": "#0ea5e9",
    "fixed32": "#f59e0b",
    "fixed64": "#f97316",
    "string": "#10b981",
    "bytes": "#8b5cf6",
    "protobuf": "#06b6d4",
}
BG_COLOR = "#0f1216"
PANEL_COLOR = "#151a21"
CODE_BG_COLOR = "#0a0d14"
BORDER_COLOR = "#1c2a38"
TEXT_COLOR = "#e7edf4"
MUTED_COLOR = "#8b949e"
ACCENT_COLOR = "#06b6d4"
ERROR_COLOR = "#ef4444"
SANS_FONT = "system-ui, -apple-system, Segoe UI, Roboto, Arial, sans-serif"
MONO_FONT = "SFMono-Regular, Consolas, Liberation Mono, Courier New, monospace"

VIEW_TABS = [("table", "Table"), ("tree", "Tree"), ("json", "JSON")]


# --- HTML Helpers ---


def _esc(text: object) -> str:
    """HTML-escape text for safe rendering."""
    return _html_escape(str(text))


def _hex_logo_svg(label: str, color: str) -> str:
    """Generate a hex-shaped SVG logo as a data-URI <img> tag."""
    font_size = 26 if len(label) > 2 else 42
    svg = (
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100" width="20" height="20">'
        f'<polygon points="50,5 90,27.5 90,72.5 50,95 10,72.5 10,27.5"'
        f' fill="{color}" fill-opacity="0.15" stroke="{color}"'
        f' stroke-width="6" stroke-linejoin="round"/>'
        f'<text x="50" y="54" dominant-baseline="middle" text-anchor="middle"'
        f' fill="{color}" font-family="monospace" font-weight="800"'
        f' font-size="{font_size}">{_esc(label)}</text></svg>'
    )
    b64 = base64.b64encode(svg.encode("utf-8")).decode("utf-8")
    return (
        f'<img src="data:image/svg+xml;base64,{b64}"'
        f' width="20" height="20" border="0" alt="{_esc(label)}">'
    )


def _section_heading(label: str, color: str, title: str, extra: str = "") -> str:
    """Render a section heading with a hex logo + title text."""
    logo = _hex_logo_svg(label, color)
    return (
        f'<table border="0" cellpadding="0" cellspacing="4"><tr>'
        f'<td valign="middle">{logo}</td>'
        f'<td valign="middle"><font size="3"><b>{title}</b></font>'
        f"{extra}</td></tr></table>"
    )


def _code_block_raw(highlighted_html: str) -> str:
    """Wrap pre-highlighted HTML in a code block table."""
    return (
        f'<table width="100%" border="0" cellpadding="10" cellspacing="1" bgcolor="{BORDER_COLOR}">'
        f'<tr><td bgcolor="{CODE_BG_COLOR}"><font face="{MONO_FONT}" size="2">'
        f"<pre>{highlighted_html}</pre></font></td></tr></table><br>"
    )


def _type_badge(type_label: str) -> str:
    color = TYPE_COLORS.get(type_label, MUTED_COLOR)
    return f'<font face="{MONO_FONT}" size="1" color="{color}"><b>{_esc(type_label)}</b></font>'


# --- Pygments Highlighting ---


def _highlight_tokens(tokens: Iterable[tuple[Any, str]], color_map: dict[Any, str]) -> str:
    """Convert Pygments (token_type, value) pairs to <font color> HTML."""
    parts: list[str] = []
    for ttype, value in tokens:
        escaped = _html_escape(value)
        tt = ttype
        color = None
        while tt:
            if tt in color_map:
                color = color_map[tt]
                break
            tt = getattr(tt, "parent", None)
        if color:
            parts.append(f'<font color="{color}">{escaped}</font>')
        else:
            parts.append(escaped)
    return "".join(parts)


def _get_json_colors() -> dict[Any, str]:
    from pygments.token import Keyword, Name, Number, Punctuation, String

    return {
        Name.Tag: "#9cdcfe",
        String: "#ce9178",
        String.Double: "#ce9178",
        Number: "#b5cea8",
        Keyword.Constant: "#569cd6",
        Punctuation: "#d4d4d4",
    }


def _highlight_json(text: str) -> str:
    """Syntax-highlight JSON using Pygments tokens and <font> tags (no CSS)."""
    from pygments.lexers import JsonLexer

    return _highlight_tokens(JsonLexer().get_tokens(text), _get_json_colors())


# --- Hex dump of unparsed bytes ---


def _format_hex_dump(raw_bytes: bytes, base_offset: int = 0, max_bytes: int = 256) -> str:
    """Format raw bytes as a classic hex dump (16 bytes per line)."""
    data = raw_bytes[:max_bytes]
    lines: list[str] = []
    for i in range(0, len(data), 16):
        chunk = data[i : i + 16]
        offset = f"{base_offset + i:08x}"
        hex_left = " ".join(f"{b:02x}" for b in chunk[:8])
        hex_right = " ".join(f"{b:02x}" for b in chunk[8:])
        ascii_repr = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
        lines.append(f"{offset}  {hex_left:<23s}  {hex_right:<23s}  |{ascii_repr}|")
    if len(raw_bytes) > max_bytes:
        lines.append(f"... ({len(raw_bytes) - max_bytes} more bytes)")
    return "\n".join(lines)


def _highlight_hex(text: str) -> str:
    """Colour the offset, hex and ASCII columns of a hex dump with <font> tags."""
    result_lines: list[str] = []
    for line in text.splitlines():
        pipe_start = line.rfind("  |")
        if len(line) >= 10 and line[8:10] == "  " and pipe_start >= 0:
            out = f'<font color="#858585">{_esc(line[:8])}</font>'
            out += f'<font color="#4ec9b0">{_esc(line[8 : pipe_start + 2])}</font>'
            out += f'<font color="#6a9955">{_esc(line[pipe_start + 2 :])}</font>'
            result_lines.append(out)
        else:
            result_lines.append(f'<font color="#858585">{_esc(line)}</font>')
    return "\n".join(result_lines)


# --- View Renderers ---


def _render_interps(content: list[dict[str, str]]) -> str:
    parts: list[str] = []
    for interp in content:
        kind = interp["kind"]
        value = interp["value"]
        color = TYPE_COLORS["string"] if kind == "string" else TEXT_COLOR
        if kind == "bytes":
            color = TYPE_COLORS["bytes"]
        parts.append(
            f'<font size="1" color="{MUTED_COLOR}">As {_esc(kind)}:</font> '
            f'<font face="{MONO_FONT}" size="2" color="{color}">{_esc(value)}</font><br>'
        )
    return "".join(parts)


def render_table_html(table: dict[str, Any]) -> str:
    """Render a ``views.to_table`` projection as nested HTML tables."""
    parts: list[str] = [
        f'<table width="100%" border="0" cellpadding="4" cellspacing="1" bgcolor="{BORDER_COLOR}">'
        f'<tr><th bgcolor="{PANEL_COLOR}" align="left"><font size="1" color="{MUTED_COLOR}">Bytes</font></th>'
        f'<th bgcolor="{PANEL_COLOR}" align="left"><font size="1" color="{MUTED_COLOR}">Field</font></th>'
        f'<th bgcolor="{PANEL_COLOR}" align="left"><font size="1" color="{MUTED_COLOR}">Type</font></th>'
        f'<th bgcolor="{PANEL_COLOR}" align="left"><font size="1" color="{MUTED_COLOR}">Content</font></th></tr>'
    ]
    for row in table["rows"]:
        content = (
            render_table_html(row["nested"])
            if row["nested"] is not None
            else _render_interps(row["content"])
        )
        parts.append(
            f'<tr><td bgcolor="{PANEL_COLOR}" valign="top" nowrap>'
            f'<font face="{MONO_FONT}" size="1" color="{MUTED_COLOR}">{_esc(row["bytes"])}</font></td>'
            f'<th scope="row" bgcolor="{PANEL_COLOR}" valign="top" align="left">'
            f'<font face="{MONO_FONT}" size="2">{row["field"]}</font></th>'
            f'<td bgcolor="{PANEL_COLOR}" valign="top">{_type_badge(row["type"])}</td>'
            f'<td bgcolor="{PANEL_COLOR}" valign="top">{content}</td></tr>'
        )
    parts.append("</table>")
    return "".join(parts)


def render_tree_html(nodes: list[dict[str, Any]]) -> str:
    """Render a ``views.to_tree`` projection as nested lists."""
    parts: list[str] = ["<ul>"]
    for node in nodes:
        line = (
            f'<li><font face="{MONO_FONT}" size="2"><b>Field {node["field"]}</b></font> '
            f'{_type_badge(node["type"])} '
        )
        primary = node["primary"]
        if node["children"]:
            line += f'<font color="{ACCENT_COLOR}">{{{len(node["children"])} fields}}</font>'
        elif primary is not None:
            value = primary["value"]
            if primary["kind"] == "string":
                value = f'"{value}"'
            line += f'<font face="{MONO_FONT}" size="2">{_esc(value)}</font>'
        start, end = node["range"]
        line += f' <font size="1" color="{MUTED_COLOR}">[{start}-{end}]</font>'
        if node["alternatives"]:
            alt = " | ".join(f"{a['kind']}: {a['value']}" for a in node["alternatives"])
            line += f'<br><font face="{MONO_FONT}" size="1" color="{MUTED_COLOR}">{_esc(alt)}</font>'
        if node["children"]:
            line += render_tree_html(node["children"])
        parts.append(line + "</li>")
    parts.append("</ul>")
    return "".join(parts)


# ── SimpleTemplate: Page Layout ─────────────────────────────────────

_PAGE_SRC = r"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>protopeek - Protobuf Decoder</title></head>
<body bgcolor="{{BG_COLOR}}" text="{{TEXT_COLOR}}" link="{{ACCENT_COLOR}}" vlink="{{ACCENT_COLOR}}" alink="{{ACCENT_COLOR}}">
<font face="{{SANS_FONT}}">

<table id="topbar" width="100%" border="0" cellpadding="6" cellspacing="0" bgcolor="{{PANEL_COLOR}}">
  <tr>
    <td valign="middle"><font face="{{MONO_FONT}}" size="5">&nbsp;<b>protopeek</b></font> <font size="2" color="{{MUTED_COLOR}}">schema-less Protobuf / gRPC decoder</font></td>
  </tr>
</table>
<br>

<form id="decode-form" action="/" method="POST">
<table width="100%" border="0" cellpadding="6" cellspacing="1" bgcolor="{{BORDER_COLOR}}"><tr><td bgcolor="{{PANEL_COLOR}}">
<label for="input"><font size="2" color="{{MUTED_COLOR}}">Hex or base64 input</font></label><br>
<textarea id="input" name="input" rows="6" cols="100">{{input_text}}</textarea><br>
<label for="format"><font size="2" color="{{MUTED_COLOR}}">Format</font></label>
<select id="format" name="format">
% for f_name in ("auto", "hex", "base64"):
  <option value="{{f_name}}"{{!' selected' if f_name == fmt else ''}}>{{f_name}}</option>
% end
</select>
<input type="checkbox" id="grpc" name="grpc" value="1"{{!' checked' if grpc else ''}}> <label for="grpc"><font size="2">gRPC (skip 5-byte header)</font></label>
<label for="max_depth"><font size="2" color="{{MUTED_COLOR}}">Max depth</font></label>
<input type="text" id="max_depth" name="max_depth" size="3" value="{{max_depth}}">
<button type="submit" name="view" value="{{view}}">Decode</button> <a href="{{sample_url}}"><font size="2">Load sample</font></a>
<table id="view-tabs" border="0" cellpadding="4" cellspacing="2"><tr>
<td><font size="2" color="{{MUTED_COLOR}}">View</font></td>
% for v_name, v_label in VIEW_TABS:
  % if v_name == view:
  <td bgcolor="#1a3a4a"><button type="submit" name="view" value="{{v_name}}"><font face="{{MONO_FONT}}"><b>{{v_label}}</b></font></button></td>
  % else:
  <td bgcolor="#182230"><button type="submit" name="view" value="{{v_name}}"><font face="{{MONO_FONT}}" color="{{MUTED_COLOR}}">{{v_label}}</font></button></td>
  % end
% end
</tr></table>
</td></tr></table>
</form>
<br>

% if error:
<table width="100%" border="0" cellpadding="8" cellspacing="1" bgcolor="{{ERROR_COLOR}}"><tr><td bgcolor="{{PANEL_COLOR}}"><font color="{{ERROR_COLOR}}"><b>Decode error:</b> {{error}}</font></td></tr></table>
% elif not has_input:
<font color="{{MUTED_COLOR}}"><i>Paste Protobuf data above (hex or base64).</i></font>
% elif not field_count:
<font color="{{ERROR_COLOR}}">No fields could be parsed; check the input format.</font><br><br>
% end
% if info_line:
<font id="parse-info" size="2" color="{{MUTED_COLOR}}">{{info_line}}</font><br><br>
% end
% if body_html:
{{!body_html}}
% end
% if trailing_html:
<br>{{!trailing_heading}}
{{!trailing_html}}
% end

<br><font size="1" color="{{MUTED_COLOR}}">protopeek {{version}}</font>
</font></body></html>"""

_PAGE_TPL = SimpleTemplate(source=_PAGE_SRC)


def render_page(
    *,
    view: str = "table",
    input_text: str = "",
    fmt: str = "auto",
    grpc: bool = False,
    max_depth: int = 10,
    info_line: str = "",
    field_count: int = 0,
    body: Any = None,
    trailing: bytes = b"",
    error: str = "",
) -> str:
    """Render the decoder page around an already-built projection.

    ``body`` is the ``views`` projection matching ``view``; this module only
    turns it into markup.
    """
    body_html = ""
    if body is not None and not error:
        if view == "tree":
            body_html = render_tree_html(body)
        elif view == "json":
            body_html = _code_block_raw(_highlight_json(json.dumps(body, indent=2, ensure_ascii=False)))
        else:
            body_html = render_table_html(body)

    trailing_html = ""
    if trailing and not error:
        trailing_html = _code_block_raw(_highlight_hex(_format_hex_dump(trailing)))

    return _PAGE_TPL.render(
        BG_COLOR=BG_COLOR,
        PANEL_COLOR=PANEL_COLOR,
        BORDER_COLOR=BORDER_COLOR,
        TEXT_COLOR=TEXT_COLOR,
        MUTED_COLOR=MUTED_COLOR,
        ACCENT_COLOR=ACCENT_COLOR,
        ERROR_COLOR=ERROR_COLOR,
        SANS_FONT=SANS_FONT,
        MONO_FONT=MONO_FONT,
        view=view,
        VIEW_TABS=VIEW_TABS,
        input_text=input_text,
        fmt=fmt,
        grpc=grpc,
        max_depth=max_depth,
        sample_url="/?sample=1&view=" + _url_quote(view),
        error=error,
        has_input=bool(input_text.strip()),
        field_count=field_count,
        info_line=info_line,
        body_html=body_html,
        trailing_heading=_section_heading(
            "..", TYPE_COLORS["bytes"], f"Unparsed bytes ({len(trailing)})"
        ),
        trailing_html=trailing_html,
        version=__version__,
    )

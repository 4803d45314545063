"""Response body encoders and small helpers used when rendering responses."""

from __future__ import annotations

import base64
import dataclasses
import datetime as _dt
import json as _json
import math
import re
from collections.abc import Mapping
from typing import Any

import yaml

MIME_JSON = "application/json"
MIME_HTML = "text/html"
MIME_XML = "application/xml"
MIME_XML2 = "text/xml"
MIME_PLAIN = "text/plain"
MIME_POST_FORM = "application/x-www-form-urlencoded"
MIME_MULTIPART_POST_FORM = "multipart/form-data"
MIME_PROTOBUF = "application/x-protobuf"
MIME_MSGPACK = "application/x-msgpack"
MIME_YAML = "application/x-yaml"
MIME_TOML = "application/toml"

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
JSONP_CONTENT_TYPE = "application/javascript; charset=utf-8"
ASCII_JSON_CONTENT_TYPE = "application/json"
XML_CONTENT_TYPE = "application/xml; charset=utf-8"
YAML_CONTENT_TYPE = "application/yaml; charset=utf-8"
TOML_CONTENT_TYPE = "application/toml; charset=utf-8"
PLAIN_CONTENT_TYPE = "text/plain; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"
PROTOBUF_CONTENT_TYPE = "application/x-protobuf"

_STATUS_CREATED = 201
_STATUS_MULTIPLE_CHOICES = 300
_STATUS_PERMANENT_REDIRECT = 308
_STATUS_NO_CONTENT = 204
_STATUS_NOT_MODIFIED = 304

_HTML_ESCAPES = {ord("<"): "\\u003c", ord(">"): "\\u003e", ord("&"): "\\u0026"}
_LINE_ESCAPES = {0x2028: "\\u2028", 0x2029: "\\u2029"}
_ALL_ESCAPES = {**_HTML_ESCAPES, **_LINE_ESCAPES}

_JS_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    '"': '\\"',
    "<": "\\u003C",
    ">": "\\u003E",
    "&": "\\u0026",
    "=": "\\u003D",
}

_XML_TEXT_ESCAPES = {
    '"': "&#34;",
    "'": "&#39;",
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    "\t": "&#x9;",
    "\n": "&#xA;",
    "\r": "&#xD;",
}
_XML_NAME = re.compile(r"[^\W\d][\w.\-:]*")
_XML_SCALAR_NAMES = {str: "string", bool: "bool", int: "int", float: "float64"}

_TOML_BARE_KEY = re.compile(r"[A-Za-z0-9_-]+")
_TOML_BASIC_ESCAPES = {
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
    '"': '\\"',
    "\\": "\\\\",
}


# ---------------------------------------------------------------- JSON


def _key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if isinstance(key, (int, float)):
        return str(key)
    raise TypeError(f"unsupported map key type: {type(key).__name__}")


def _prepare(obj: Any) -> Any:
    """Turn obj into plain data: maps sorted by key, records in field order."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: _prepare(getattr(obj, f.name)) for f in dataclasses.fields(obj)
        }
    if isinstance(obj, Mapping):
        items = sorted(((_key(k), v) for k, v in obj.items()), key=lambda kv: kv[0])
        return {k: _prepare(v) for k, v in items}
    if isinstance(obj, (list, tuple)):
        return [_prepare(item) for item in obj]
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, (_dt.datetime, _dt.date, _dt.time)):
        return obj.isoformat()
    return obj


def _encode_json(data: Any, *, escape_html: bool, indent: int | None = None) -> str:
    if indent is None:
        text = _json.dumps(
            _prepare(data), ensure_ascii=False, separators=(",", ":"), allow_nan=False
        )
    else:
        text = _json.dumps(
            _prepare(data),
            ensure_ascii=False,
            separators=(",", ": "),
            indent=indent,
            allow_nan=False,
        )
    return text.translate(_ALL_ESCAPES if escape_html else _LINE_ESCAPES)


def json_body(data: Any) -> bytes:
    """Compact JSON with HTML-sensitive characters escaped."""
    return _encode_json(data, escape_html=True).encode("utf-8")


def indented_json_body(data: Any) -> bytes:
    """JSON indented by four spaces."""
    return _encode_json(data, escape_html=True, indent=4).encode("utf-8")


def secure_json_body(prefix: str, data: Any) -> bytes:
    """JSON prefixed with prefix when the encoding is an array."""
    text = _encode_json(data, escape_html=True)
    if text.startswith("[") and text.endswith("]"):
        text = prefix + text
    return text.encode("utf-8")


def _js_escape(text: str) -> str:
    out = []
    for ch in text:
        if ch in _JS_ESCAPES:
            out.append(_JS_ESCAPES[ch])
        elif ord(ch) < 0x20 or (ord(ch) >= 0x80 and not ch.isprintable()):
            out.append(f"\\u{ord(ch):04X}")
        else:
            out.append(ch)
    return "".join(out)


def jsonp_body(callback: str, data: Any) -> bytes:
    """JSON wrapped in a call to the escaped callback name."""
    payload = _encode_json(data, escape_html=True)
    return f"{_js_escape(callback)}({payload});".encode("utf-8")


def ascii_json_body(data: Any) -> bytes:
    """JSON with every non-ASCII character written as a \\u escape."""
    text = _encode_json(data, escape_html=True)
    return "".join(
        f"\\u{ord(ch):04x}" if ord(ch) >= 128 else ch for ch in text
    ).encode("ascii")


def pure_json_body(data: Any) -> bytes:
    """JSON without HTML escaping, ending with a newline."""
    return (_encode_json(data, escape_html=False) + "\n").encode("utf-8")


# ---------------------------------------------------------------- XML


def _xml_escape(text: str) -> str:
    out = []
    for ch in text:
        code = ord(ch)
        if ch in _XML_TEXT_ESCAPES:
            out.append(_XML_TEXT_ESCAPES[ch])
        elif (code < 0x20) or 0xD800 <= code <= 0xDFFF or code in (0xFFFE, 0xFFFF):
            out.append("\ufffd")
        else:
            out.append(ch)
    return "".join(out)


def _xml_scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _xml_tag(name: str) -> str:
    if not _XML_NAME.fullmatch(name):
        raise ValueError(f"invalid XML element name: {name!r}")
    return name


def _xml_value(parts: list[str], name: str | None, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, Mapping):
        tag = _xml_tag(name or "map")
        parts.append(f"<{tag}>")
        for key, item in value.items():
            _xml_value(parts, _key(key), item)
        parts.append(f"</{tag}>")
        return
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        tag = _xml_tag(name or type(value).__name__)
        parts.append(f"<{tag}>")
        for f in dataclasses.fields(value):
            _xml_value(parts, f.name, getattr(value, f.name))
        parts.append(f"</{tag}>")
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _xml_value(parts, name, item)
        return
    if isinstance(value, (_dt.datetime, _dt.date, _dt.time)):
        text = value.isoformat()
        tag = name or "time"
    else:
        text = _xml_scalar_text(value)
        tag = name or next(
            (n for t, n in _XML_SCALAR_NAMES.items() if type(value) is t),
            type(value).__name__,
        )
    tag = _xml_tag(tag)
    parts.append(f"<{tag}>{_xml_escape(text)}</{tag}>")


def xml_body(data: Any) -> bytes:
    """XML; a top-level mapping becomes a <map> element with one child per key."""
    parts: list[str] = []
    _xml_value(parts, None, data)
    return "".join(parts).encode("utf-8")


# ---------------------------------------------------------------- YAML


def yaml_body(data: Any) -> bytes:
    """YAML with mapping keys sorted."""
    text = yaml.safe_dump(
        _prepare(data),
        allow_unicode=True,
        default_flow_style=False,
        sort_keys=False,
        indent=4,
    )
    if text.endswith("\n...\n"):
        text = text[: -len("...\n")]
    return text.encode("utf-8")


# ---------------------------------------------------------------- TOML


def _toml_can_be_literal(text: str) -> bool:
    return all(ch != "'" and (ch == "\t" or ord(ch) >= 0x20) and ch != "\x7f" for ch in text)


def _toml_string(text: str) -> str:
    if _toml_can_be_literal(text):
        return f"'{text}'"
    out = []
    for ch in text:
        if ch in _TOML_BASIC_ESCAPES:
            out.append(_TOML_BASIC_ESCAPES[ch])
        elif ord(ch) < 0x20 or ch == "\x7f":
            out.append(f"\\u{ord(ch):04X}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def _toml_key(key: str) -> str:
    if _TOML_BARE_KEY.fullmatch(key):
        return key
    return _toml_string(key)


def _toml_float(value: float) -> str:
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = repr(value)
    if "." not in text and "e" not in text:
        text += ".0"
    return text


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _toml_float(value)
    if isinstance(value, str):
        return _toml_string(value)
    if isinstance(value, (_dt.datetime, _dt.date, _dt.time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _toml_string(base64.b64encode(bytes(value)).decode("ascii"))
    if isinstance(value, Mapping):
        inner = ", ".join(
            f"{_toml_key(k)} = {_toml_value(v)}" for k, v in value.items() if v is not None
        )
        return "{" + inner + "}"
    if isinstance(value, list):
        return "[" + ", ".join(_toml_value(v) for v in value) + "]"
    raise TypeError(f"unsupported TOML value type: {type(value).__name__}")


def _is_table_array(value: Any) -> bool:
    return (
        isinstance(value, list)
        and bool(value)
        and all(isinstance(item, Mapping) for item in value)
    )


def _toml_table(table: Mapping, path: list[str], lines: list[str]) -> None:
    scalars, tables, arrays = [], [], []
    for key, value in table.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            tables.append((key, value))
        elif _is_table_array(value):
            arrays.append((key, value))
        else:
            scalars.append((key, value))
    for key, value in scalars:
        lines.append(f"{_toml_key(key)} = {_toml_value(value)}")
    for key, value in tables:
        name = path + [key]
        if lines:
            lines.append("")
        lines.append("[" + ".".join(_toml_key(k) for k in name) + "]")
        _toml_table(value, name, lines)
    for key, items in arrays:
        name = path + [key]
        for item in items:
            if lines:
                lines.append("")
            lines.append("[[" + ".".join(_toml_key(k) for k in name) + "]]")
            _toml_table(item, name, lines)


def toml_body(data: Any) -> bytes:
    """TOML for a mapping or record; strings are literal where possible."""
    prepared = _prepare(data)
    if not isinstance(prepared, Mapping):
        raise TypeError("toml: top level value must be a table")
    lines: list[str] = []
    _toml_table(prepared, [], lines)
    return ("\n".join(lines) + "\n" if lines else "").encode("utf-8")


# ---------------------------------------------------------------- SSE


def _sse_field(text: str) -> str:
    return text.replace("\n", "\\n").replace("\r", "\\r")


def _sse_scalar(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def sse_body(event: str, data: Any, id: str = "") -> bytes:
    """One server-sent event: optional id and event lines, then the data."""
    parts = []
    if id:
        parts.append(f"id:{_sse_field(id)}\n")
    if event:
        parts.append(f"event:{_sse_field(event)}\n")
    is_structured = isinstance(data, (Mapping, list, tuple)) or (
        dataclasses.is_dataclass(data) and not isinstance(data, type)
    )
    if is_structured:
        parts.append("data:" + _encode_json(data, escape_html=True) + "\n\n")
    else:
        text = _sse_scalar(data).replace("\n", "\ndata:").replace("\r", "\\r")
        parts.append("data:" + text + "\n\n")
    return "".join(parts).encode("utf-8")


# ---------------------------------------------------------------- helpers


def validate_redirect_code(code: int) -> int:
    """Return code if it may be used for a redirect, else raise ValueError."""
    if (
        code < _STATUS_MULTIPLE_CHOICES or code > _STATUS_PERMANENT_REDIRECT
    ) and code != _STATUS_CREATED:
        raise ValueError(f"Cannot redirect with status code {code}")
    return code


def parse_accept(header: str) -> list[str]:
    """Split an Accept header into media ranges without their parameters."""
    out = []
    for part in header.split(","):
        index = part.find(";")
        if index > 0:
            part = part[:index]
        part = part.strip()
        if part:
            out.append(part)
    return out


def filter_flags(content_type: str) -> str:
    """Cut a Content-Type value at the first space or semicolon."""
    for index, ch in enumerate(content_type):
        if ch in " ;":
            return content_type[:index]
    return content_type


def body_allowed_for_status(status: int) -> bool:
    """Tell whether a response with this status may carry a body."""
    if 100 <= status <= 199:
        return False
    return status not in (_STATUS_NO_CONTENT, _STATUS_NOT_MODIFIED)
"""Incoming HTTP requests: headers, query strings, cookies and form bodies."""

from __future__ import annotations

import errno
import io
import os
import posixpath
import re
import string
from dataclasses import dataclass, field
from email.message import Message
from typing import Any, BinaryIO, Iterable, Iterator, Mapping
from urllib.parse import unquote_plus, urlsplit, urlunsplit

_TOKEN_CHARS = frozenset("!#$%&'*+-.^_`|~" + string.ascii_letters + string.digits)
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_MAX_URLENCODED_BODY = 10 << 20
_VALUE_HEADROOM = 10 << 20
_FORM_METHODS = frozenset({"POST", "PUT", "PATCH"})


class FormError(ValueError):
    """A request body could not be parsed as a form."""


class NotMultipartError(FormError):
    """The request is not a multipart/form-data request."""


class NoCookieError(LookupError):
    """The named cookie is not present in the request."""


def _canonical(key: str) -> str:
    if not key or any(ch not in _TOKEN_CHARS for ch in key):
        return key
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


class Headers:
    """A case-insensitive, multi-valued mapping of header names to values."""

    def __init__(
        self, initial: Mapping[str, Any] | Iterable[tuple[str, str]] | None = None
    ) -> None:
        self._values: dict[str, list[str]] = {}
        if initial is None:
            return
        items = initial.items() if isinstance(initial, Mapping) else initial
        for key, value in items:
            if isinstance(value, (list, tuple)):
                for item in value:
                    self.add(key, item)
            else:
                self.add(key, value)

    def get(self, key: str) -> str:
        """Return the first value for key, or an empty string."""
        values = self._values.get(_canonical(key))
        return values[0] if values else ""

    def get_all(self, key: str) -> list[str]:
        """Return every value for key."""
        return list(self._values.get(_canonical(key), ()))

    def set(self, key: str, value: str) -> None:
        """Replace all values for key with a single value."""
        self._values[_canonical(key)] = [value]

    def add(self, key: str, value: str) -> None:
        """Append a value for key."""
        self._values.setdefault(_canonical(key), []).append(value)

    def delete(self, key: str) -> None:
        """Remove every value for key."""
        self._values.pop(_canonical(key), None)

    def items(self) -> Iterator[tuple[str, list[str]]]:
        for key, values in self._values.items():
            yield key, list(values)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and _canonical(key) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"Headers({self._values!r})"


@dataclass
class FileHeader:
    """An uploaded file from a multipart form."""

    filename: str
    headers: Headers = field(default_factory=Headers)
    size: int = 0
    content: bytes | None = None

    def open(self) -> BinaryIO:
        """Return a readable binary stream over the file's content."""
        if self.content is None:
            raise FileNotFoundError(
                errno.ENOENT, os.strerror(errno.ENOENT), self.filename
            )
        return io.BytesIO(self.content)


@dataclass
class MultipartForm:
    """Values and files of a parsed multipart/form-data body."""

    value: dict[str, list[str]] = field(default_factory=dict)
    file: dict[str, list[FileHeader]] = field(default_factory=dict)


def _unescape(text: str) -> str:
    if _BAD_ESCAPE.search(text):
        raise ValueError(f"invalid URL escape in {text!r}")
    return unquote_plus(text)


def _parse_query(text: str) -> tuple[dict[str, list[str]], str | None]:
    values: dict[str, list[str]] = {}
    error: str | None = None
    for pair in text.split("&"):
        if not pair:
            continue
        if ";" in pair:
            error = error or "invalid semicolon separator in query"
            continue
        raw_key, _, raw_value = pair.partition("=")
        try:
            key, value = _unescape(raw_key), _unescape(raw_value)
        except ValueError as exc:
            error = error or str(exc)
            continue
        values.setdefault(key, []).append(value)
    return values, error


def _header_param(header: str, value: str, param: str) -> str | None:
    msg = Message()
    msg[header] = value
    found = msg.get_param(param, header=header)
    if found is None or isinstance(found, tuple):
        return None if found is None else str(found[2])
    return str(found)


def _parse_part_headers(block: bytes) -> Headers:
    headers = Headers()
    for line in block.decode("utf-8", errors="replace").split("\r\n"):
        if not line:
            continue
        name, sep, value = line.partition(":")
        if not sep:
            raise FormError(f"malformed MIME header line: {line!r}")
        headers.add(name.strip(), value.strip())
    return headers


def _parse_multipart(data: bytes, boundary: str, max_memory: int) -> MultipartForm:
    delimiter = b"\r\n--" + boundary.encode("latin-1")
    pieces = (b"\r\n" + data).split(delimiter)
    form = MultipartForm()
    value_budget = max_memory + _VALUE_HEADROOM
    ended = False
    for piece in pieces[1:]:
        if piece.startswith(b"--"):
            ended = True
            break
        line_end = piece.find(b"\r\n")
        if line_end < 0 or piece[:line_end].strip(b" \t"):
            raise FormError("multipart: malformed part boundary")
        content = piece[line_end + 2 :]
        if content.startswith(b"\r\n"):
            head, payload = b"", content[2:]
        else:
            head, sep, payload = content.partition(b"\r\n\r\n")
            if not sep:
                raise FormError("multipart: malformed part headers")
        headers = _parse_part_headers(head)
        disposition = headers.get("Content-Disposition")
        if not disposition:
            continue
        msg = Message()
        msg["Content-Disposition"] = disposition
        if msg.get_content_disposition() != "form-data":
            continue
        name = _header_param("Content-Disposition", disposition, "name")
        if not name:
            continue
        filename = msg.get_filename()
        if not filename:
            value_budget -= len(payload)
            if value_budget < 0:
                raise FormError("multipart: message too large")
            form.value.setdefault(name, []).append(
                payload.decode("utf-8", errors="replace")
            )
            continue
        form.file.setdefault(name, []).append(
            FileHeader(
                filename=posixpath.basename(filename),
                headers=headers,
                size=len(payload),
                content=payload,
            )
        )
    if not ended:
        raise FormError("multipart: unexpected end of body")
    return form


@dataclass
class Request:
    """An HTTP request as seen by a handler."""

    method: str = "GET"
    url: str = "/"
    headers: Any = None
    body: Any = None
    remote_addr: str = ""
    context: dict[Any, Any] = field(default_factory=dict)
    _post_form: dict[str, list[str]] | None = field(
        default=None, init=False, repr=False
    )
    _multipart: MultipartForm | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.method = (self.method or "GET").upper()
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)
        if isinstance(self.body, str):
            self.body = io.BytesIO(self.body.encode("utf-8"))
        elif isinstance(self.body, (bytes, bytearray, memoryview)):
            self.body = io.BytesIO(bytes(self.body))

    @property
    def path(self) -> str:
        """The path component of the request URL."""
        return urlsplit(self.url).path

    @path.setter
    def path(self, value: str) -> None:
        self.url = urlunsplit(urlsplit(self.url)._replace(path=value))

    def query(self) -> dict[str, list[str]]:
        """Return the URL query values; malformed pairs are skipped."""
        return _parse_query(urlsplit(self.url).query)[0]

    def cookie(self, name: str) -> str:
        """Return the raw value of the named cookie."""
        for line in self.headers.get_all("Cookie"):
            for part in line.split(";"):
                part = part.strip()
                if not part:
                    continue
                key, _, value = part.partition("=")
                key = key.strip()
                if not key or any(ch not in _TOKEN_CHARS for ch in key):
                    continue
                if key != name:
                    continue
                if len(value) > 1 and value[0] == value[-1] == '"':
                    value = value[1:-1]
                return value
        raise NoCookieError(f"named cookie not present: {name}")

    def _media_type(self) -> str:
        value = self.headers.get("Content-Type")
        if not value:
            return "application/octet-stream"
        return value.split(";", 1)[0].strip().lower()

    def post_form(self, max_memory: int) -> dict[str, list[str]]:
        """Return form values from the body, parsing it on first use.

        On a parse error the values parsed so far are kept for later calls
        and the error is raised.
        """
        if self._post_form is not None:
            return self._post_form
        values: dict[str, list[str]] = {}
        self._post_form = values
        media_type = self._media_type()
        if media_type == "application/x-www-form-urlencoded" and (
            self.method in _FORM_METHODS
        ):
            if self.body is None:
                raise FormError("missing form body")
            raw = self.body.read(_MAX_URLENCODED_BODY + 1)
            if len(raw) > _MAX_URLENCODED_BODY:
                raise FormError("http: POST too large")
            parsed, error = _parse_query(raw.decode("utf-8", errors="replace"))
            values.update(parsed)
            if error is not None:
                raise FormError(error)
        elif media_type == "multipart/form-data":
            form = self.multipart_form(max_memory)
            for key, items in form.value.items():
                values.setdefault(key, []).extend(items)
        return values

    def multipart_form(self, max_memory: int) -> MultipartForm:
        """Parse and return the multipart/form-data body."""
        if self._multipart is not None:
            return self._multipart
        value = self.headers.get("Content-Type")
        if not value or self._media_type() != "multipart/form-data":
            raise NotMultipartError("request Content-Type isn't multipart/form-data")
        boundary = _header_param("Content-Type", value, "boundary")
        if not boundary:
            raise FormError("no multipart boundary param in Content-Type")
        if self.body is None:
            raise FormError("missing form body")
        self._multipart = _parse_multipart(self.body.read(), boundary, max_memory)
        return self._multipart

    def read_body(self) -> bytes:
        """Read and return the rest of the request body."""
        if self.body is None:
            raise ValueError("cannot read nil body")
        return self.body.read()
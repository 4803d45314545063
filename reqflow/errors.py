"""Errors attached to a request context, with typed filtering and JSON views."""

from __future__ import annotations

import dataclasses
import json as _json
from collections.abc import Mapping
from enum import IntEnum
from typing import Any


class ErrorType(IntEnum):
    """Bit flags classifying an attached error."""

    BIND = 1 << 63
    RENDER = 1 << 62
    PRIVATE = 1 << 0
    PUBLIC = 1 << 1
    ANY = (1 << 64) - 1
    NU = 2


def _json_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"object of type {type(obj).__name__} is not JSON serializable")


def _dumps(data: Any) -> str:
    return _json.dumps(
        data, separators=(",", ":"), sort_keys=True, default=_json_default
    )


class Error(Exception):
    """An error wrapped with a type and optional metadata."""

    def __init__(
        self,
        err: BaseException,
        type: int = ErrorType.PRIVATE,
        meta: Any = None,
    ) -> None:
        super().__init__(str(err))
        self.err = err
        self.type = type
        self.meta = meta
        self.__cause__ = err

    def __str__(self) -> str:
        return str(self.err)

    def set_type(self, flags: int) -> Error:
        """Set the error's type and return the error."""
        self.type = flags
        return self

    def set_meta(self, data: Any) -> Error:
        """Set the error's metadata and return the error."""
        self.meta = data
        return self

    def json(self) -> Any:
        """Return a JSON-ready view of the error."""
        data: dict[str, Any] = {}
        meta = self.meta
        if meta is not None:
            if dataclasses.is_dataclass(meta) and not isinstance(meta, type):
                return meta
            if isinstance(meta, Mapping):
                for key, value in meta.items():
                    data[str(key)] = value
            else:
                data["meta"] = meta
        data.setdefault("error", str(self))
        return data

    def json_text(self) -> str:
        """Serialise the error's JSON view to a compact string."""
        return _dumps(self.json())

    def is_type(self, flags: int) -> bool:
        """Tell whether the error carries any of the given flags."""
        return (int(self.type) & int(flags)) > 0


class ErrorList(list):
    """The list of errors collected while handling a request."""

    def by_type(self, typ: int) -> ErrorList:
        """Return the errors that carry any of the given flags."""
        if not self:
            return ErrorList()
        if typ == ErrorType.ANY:
            return self
        return ErrorList(msg for msg in self if msg.is_type(typ))

    def last(self) -> Error | None:
        """Return the last error, or None when there is none."""
        return self[-1] if self else None

    def errors(self) -> list[str]:
        """Return the message of every error."""
        return [str(msg) for msg in self]

    def json(self) -> Any:
        """Return None, a single error's view, or a list of views."""
        if not self:
            return None
        if len(self) == 1:
            return self[0].json()
        return [msg.json() for msg in self]

    def json_text(self) -> str:
        """Serialise the list's JSON view to a compact string."""
        return _dumps(self.json())

    def __str__(self) -> str:
        lines = []
        for number, msg in enumerate(self, start=1):
            lines.append(f"Error #{number:02d}: {msg.err}\n")
            if msg.meta is not None:
                lines.append(f"     Meta: {msg.meta}\n")
        return "".join(lines)
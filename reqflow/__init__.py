"""HTTP request parsing, typed error collection, response body encoders and rooted file systems."""

__version__ = "0.1.0"

__all__ = ["errors", "fs", "render", "request"]
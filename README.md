# reqflow

reqflow is a set of building blocks for HTTP handlers:

- **Requests.** `reqflow.request.Request` holds an incoming request. It reads query strings, cookies, URL-encoded and multipart form bodies, and uploaded files. Headers are kept in a case-insensitive `Headers` mapping that allows several values per name.
- **Errors.** `reqflow.errors` collects errors in an `ErrorList` of `Error` items. Each item carries `ErrorType` flags and optional metadata, and each has a JSON view.
- **Response bodies.** `reqflow.render` encodes data as JSON (compact, indented, secure, JSONP, ASCII or pure), XML, YAML, TOML and server-sent events. It also parses `Accept` headers and checks redirect and body-allowed status codes.
- **Files.** `reqflow.fs` opens files below a root directory. Directory listing can be turned off.

## Installation

```
pip install reqflow
```

## Modules

| Module | What it holds |
| --- | --- |
| `reqflow.request` | `Request`, `Headers`, `MultipartForm`, `FileHeader`, `FormError`, `NotMultipartError`, `NoCookieError` |
| `reqflow.errors` | `Error`, `ErrorList`, `ErrorType` |
| `reqflow.render` | `json_body`, `indented_json_body`, `secure_json_body`, `jsonp_body`, `ascii_json_body`, `pure_json_body`, `xml_body`, `yaml_body`, `toml_body`, `sse_body`, `validate_redirect_code`, `parse_accept`, `filter_flags`, `body_allowed_for_status`, and the `MIME_*` and `*_CONTENT_TYPE` constants |
| `reqflow.fs` | `File`, `DirFS`, `OnlyFilesFS`, `make_dir` |

## Requests

```python
from reqflow.request import Request

req = Request(
    "POST",
    "/?page=2",
    headers={"Content-Type": "application/x-www-form-urlencoded", "Cookie": "user=gin"},
    body="foo=bar&foo=second",
)
req.query()               # {"page": ["2"]}
req.post_form(32 << 20)   # {"foo": ["bar", "second"]}
req.cookie("user")        # "gin"
```

The forms are parsed the first time they are asked for and then kept. `post_form` reads URL-encoded bodies only for POST, PUT and PATCH requests. For `multipart/form-data` bodies, `multipart_form` returns the values and the uploaded `FileHeader` objects, and `FileHeader.open()` gives a binary stream over a file's content. When a named cookie is missing, `cookie` raises `NoCookieError`. When the request is not multipart, `multipart_form` raises `NotMultipartError`.

## Errors

```python
from reqflow.errors import Error, ErrorList, ErrorType

errs = ErrorList([
    Error(ValueError("first"), ErrorType.PRIVATE),
    Error(ValueError("third"), ErrorType.PUBLIC, meta={"status": "400"}),
])
errs.by_type(ErrorType.PUBLIC).errors()   # ["third"]
errs.json_text()   # '[{"error":"first"},{"error":"third","status":"400"}]'
str(errs)          # 'Error #01: first\nError #02: third\n     Meta: {...}\n'
```

`Error.json()` handles metadata as follows:

- A mapping's keys are merged into the view.
- A dataclass is returned as it is.
- Any other value is put under `"meta"`.

Unless the metadata already supplies `"error"`, the message is added under that key.

## Rendering

```python
from reqflow import render

render.json_body({"foo": "bar", "html": "<b>"})   # {"foo":"bar","html":"\u003cb\u003e"}
render.pure_json_body({"html": "<b>"})            # {"html":"<b>"} plus a newline
render.xml_body({"foo": "bar"})                   # <map><foo>bar</foo></map>
render.yaml_body({"foo": "bar"})                  # foo: bar
render.toml_body({"foo": "bar"})                  # foo = 'bar'
render.parse_accept("text/html,application/xml;q=0.9")   # ["text/html", "application/xml"]
render.validate_redirect_code(200)                # raises ValueError
```

Each encoder returns `bytes`. The JSON encoders sort mapping keys.

## Serving files

`make_dir(root, list_directory)` returns a file system whose `open(name)` gives a `File` below `root`. Names cannot reach above the root. If `list_directory` is false, `readdir` on an opened directory always returns an empty list.

## What this package does not do

- There is no per-request context object and no handler chain.
- There is no response writer: the encoders build bodies but do not send them, and cookies are not written.
- There is no debug-mode logging.
- There is no server and no command-line tool.

The package parses requests and encodes bodies. Connecting them to a server is left to the caller.

## Running the tests

```
pip install -e ".[test]"
pytest
```
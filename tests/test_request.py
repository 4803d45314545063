import pytest

from reqflow.request import (
    FileHeader,
    FormError,
    Headers,
    MultipartForm,
    NoCookieError,
    NotMultipartError,
    Request,
)

BOUNDARY = "--testboundary"


def _multipart_body(boundary, fields=(), files=()):
    chunks = []
    for name, value in fields:
        chunks.append(
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode()
            + value.encode()
            + b"\r\n"
        )
    for name, filename, content in files:
        chunks.append(
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
            "Content-Type: application/octet-stream\r\n\r\n".encode()
            + content
            + b"\r\n"
        )
    chunks.append(f"--{boundary}--\r\n".encode())
    return b"".join(chunks)


def _multipart_request(body, boundary=BOUNDARY):
    return Request(
        "POST",
        "/",
        headers={"Content-Type": f"multipart/form-data; boundary={boundary}"},
        body=body,
    )


SOURCE_FIELDS = [
    ("foo", "bar"),
    ("bar", "10"),
    ("bar", "foo2"),
    ("array", "first"),
    ("array", "second"),
    ("id", ""),
    ("names[a]", "thinkerou"),
    ("names[b]", "tianou"),
]


def test_headers_are_case_insensitive():
    headers = Headers()
    headers.set("content-type", "text/plain")
    assert headers.get("Content-Type") == "text/plain"
    assert headers.get("CONTENT-TYPE") == "text/plain"
    assert "Content-type" in headers


def test_headers_add_get_all_and_delete():
    headers = Headers()
    headers.add("X-Real-IP", "10.10.10.10")
    headers.add("x-real-ip", "20.20.20.20")
    assert headers.get_all("X-Real-Ip") == ["10.10.10.10", "20.20.20.20"]
    assert headers.get("x-real-ip") == "10.10.10.10"
    headers.set("X-Real-IP", "30.30.30.30")
    assert headers.get_all("x-real-ip") == ["30.30.30.30"]
    headers.delete("X-REAL-IP")
    assert headers.get("X-Real-IP") == ""
    assert headers.get_all("X-Real-IP") == []
    assert len(headers) == 0


def test_headers_from_mapping_with_lists():
    headers = Headers({"Accept": ["a", "b"], "Host": "example.com"})
    assert headers.get_all("accept") == ["a", "b"]
    assert headers.get("host") == "example.com"


def test_query_parsing():
    req = Request("GET", "http://example.com/?foo=bar&page=10&id=")
    assert req.query() == {"foo": ["bar"], "page": ["10"], "id": [""]}


def test_query_repeated_keys_and_escapes():
    req = Request(
        "POST", "/?both=GET&id=main&id=omit&array%5B%5D=first&array[]=second&x=a+b"
    )
    query = req.query()
    assert query["id"] == ["main", "omit"]
    assert query["array[]"] == ["first", "second"]
    assert query["both"] == ["GET"]
    assert query["x"] == ["a b"]


def test_query_skips_malformed_pairs():
    req = Request("GET", "/?good=1&bad=%zz&semi=a;b")
    assert req.query() == {"good": ["1"]}


def test_empty_url_query_is_empty():
    assert Request("POST", "").query() == {}


def test_path_setter_keeps_query():
    req = Request("GET", "/some/path?x=1")
    req.path = "/other"
    assert req.path == "/other"
    assert req.query() == {"x": ["1"]}


def test_cookie_found_and_missing():
    req = Request("GET", "/get", headers={"Cookie": "user=gin"})
    assert req.cookie("user") == "gin"
    with pytest.raises(NoCookieError):
        req.cookie("nokey")


def test_cookie_among_several_and_quoted():
    req = Request("GET", "/", headers={"Cookie": 'a=1; user="gin"; b=2'})
    assert req.cookie("user") == "gin"
    assert req.cookie("b") == "2"


def test_urlencoded_post_form():
    req = Request(
        "POST",
        "/?both=GET",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        body="foo=bar&page=11&both=&foo=second",
    )
    form = req.post_form(32 << 20)
    assert form == {"foo": ["bar", "second"], "page": ["11"], "both": [""]}
    assert req.query() == {"both": ["GET"]}


def test_post_form_is_cached():
    req = Request(
        "POST",
        "/",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        body="foo=bar",
    )
    first = req.post_form(1024)
    assert req.post_form(1024) is first
    assert req.read_body() == b""


def test_post_form_ignores_get_and_unknown_content_type():
    get_req = Request(
        "GET",
        "/",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        body="foo=bar",
    )
    assert get_req.post_form(1024) == {}
    plain = Request("POST", "/?foo=bar", body="foo=unused")
    assert plain.post_form(1024) == {}
    assert plain.read_body() == b"foo=unused"


def test_urlencoded_bad_escape_raises_and_keeps_good_values():
    req = Request(
        "POST",
        "/",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        body="ok=1&bad=%zz",
    )
    with pytest.raises(FormError):
        req.post_form(1024)
    assert req.post_form(1024) == {"ok": ["1"]}


def test_urlencoded_missing_body_raises():
    req = Request(
        "POST", "/", headers={"Content-Type": "application/x-www-form-urlencoded"}
    )
    with pytest.raises(FormError):
        req.post_form(1024)


def test_multipart_values():
    req = _multipart_request(_multipart_body(BOUNDARY, SOURCE_FIELDS))
    form = req.multipart_form(32 << 20)
    expected = {}
    for name, value in SOURCE_FIELDS:
        expected.setdefault(name, []).append(value)
    assert form.value == expected
    assert form.file == {}
    assert req.post_form(32 << 20) == expected


def test_multipart_file_upload():
    content = b"test"
    body = _multipart_body(BOUNDARY, [("foo", "bar")], [("file", "test", content)])
    req = _multipart_request(body)
    form = req.multipart_form(32 << 20)
    assert form.value == {"foo": ["bar"]}
    [upload] = form.file["file"]
    assert upload.filename == "test"
    assert upload.size == len(content)
    assert upload.headers.get("content-type") == "application/octet-stream"
    with upload.open() as stream:
        assert stream.read() == content
    assert req.multipart_form(32 << 20) is form


def test_multipart_without_parts():
    req = _multipart_request(f"--{BOUNDARY}--\r\n".encode())
    assert req.multipart_form(1024) == MultipartForm()


def test_multipart_truncated_body_raises():
    body = _multipart_body(BOUNDARY, [("foo", "bar")])
    req = _multipart_request(body[: body.rfind(b"--" + BOUNDARY.encode() + b"--")])
    with pytest.raises(FormError):
        req.multipart_form(1024)


def test_multipart_values_too_large():
    big = "x" * ((10 << 20) + 1)
    req = _multipart_request(_multipart_body(BOUNDARY, [("big", big)]))
    with pytest.raises(FormError):
        req.multipart_form(0)


def test_multipart_on_non_multipart_request():
    req = Request(
        "POST",
        "/",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        body="a=b",
    )
    with pytest.raises(NotMultipartError):
        req.multipart_form(1024)
    assert req.post_form(1024) == {"a": ["b"]}


def test_multipart_missing_boundary():
    req = Request("POST", "/", headers={"Content-Type": "multipart/form-data"}, body=b"")
    with pytest.raises(FormError):
        req.multipart_form(1024)


def test_file_header_without_content_cannot_open():
    with pytest.raises(OSError):
        FileHeader(filename="file").open()


def test_read_body_and_missing_body():
    req = Request("POST", "/", body="Fetch binary post data")
    assert req.read_body() == b"Fetch binary post data"
    assert req.read_body() == b""
    with pytest.raises(ValueError):
        Request("POST", "/").read_body()


def test_method_defaults_and_normalises():
    assert Request("", "/").method == "GET"
    assert Request("post", "/").method == "POST"
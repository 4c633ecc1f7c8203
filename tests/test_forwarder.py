import pytest

from conftest import free_port
from llmproxy.forwarder import (
    Forwarder,
    UpstreamUnreachableError,
    build_target_url,
    filter_request_headers,
)


@pytest.mark.parametrize(
    "addr, path, expected",
    [
        ("localhost:8001", "/v1/completions", "http://localhost:8001/v1/completions"),
        ("http://localhost:8001", "/v1/x?a=1&b=2", "http://localhost:8001/v1/x?a=1&b=2"),
        ("https://localhost:8001", None, "http://localhost:8001/"),
        ("http://http://localhost:8001", "", "http://localhost:8001/"),
    ],
)
def test_build_target_url(addr, path, expected):
    assert build_target_url(addr, path) == expected


def test_filter_request_headers_keeps_host_and_end_to_end_headers():
    headers = [
        ("Host", "proxy.local"),
        ("Authorization", "Bearer x"),
        ("Transfer-Encoding", "chunked"),
        ("Connection", "keep-alive"),
    ]
    assert filter_request_headers(headers) == {"Host": "proxy.local", "Authorization": "Bearer x"}


def test_forward_relays_downstream_response(backend):
    resp = Forwarder().forward(
        method="POST",
        path_and_query="/echo/v1?x=1",
        headers={"Content-Type": "application/json", "X-Trace": "t1"},
        body=b'{"model":"m"}',
        target_addr=backend,
    )
    with resp:
        data = resp.json()
    assert resp.status_code == 200
    assert data["method"] == "POST"
    assert data["path"] == "/echo/v1"
    assert data["query"] == "x=1"
    assert data["headers"]["X-Trace"] == "t1"
    assert data["body"] == '{"model":"m"}'
    # requests' own defaults are not injected
    assert "python-requests" not in data["headers"].get("User-Agent", "")


def test_forward_to_closed_port_is_unreachable():
    with pytest.raises(UpstreamUnreachableError):
        Forwarder(timeout=(1.0, 1.0)).forward("POST", "/", {}, b"{}", f"127.0.0.1:{free_port()}")


def test_probe(backend):
    forwarder = Forwarder()
    ok, message = forwarder.probe(backend)
    assert ok
    assert message == f"Service at {backend} is reachable"

    addr = f"127.0.0.1:{free_port()}"
    ok, message = forwarder.probe(addr)
    assert not ok
    assert message.startswith(f"Failed to connect to service at {addr}")

"""SDK client against a mocked transport: action envelopes, error mapping, upload retry."""
import json

import httpx
import pytest

from assetgate_client import AssetGateClient, AssetGateError


def _client(handler) -> AssetGateClient:
    client = AssetGateClient("http://api.test")
    client._session = httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(handler))
    return client


def test_generate_presigned_sends_action_envelope():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "a1", "url": "http://s3/b", "data": {"key": "default/a1"}})

    with _client(handler) as client:
        grant = client.generate_presigned("image/png", name="a.png", metadata={"user": "u1"})

    assert grant["id"] == "a1"
    assert seen["path"] == "/api/upload"
    assert seen["body"] == {
        "action": "generatePresignedPostPolicy",
        "args": {"fileType": "image/png", "name": "a.png", "metadata": {"user": "u1"}},
    }


def test_error_field_becomes_exception():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"error": "Asset dup already exists"})

    with _client(handler) as client:
        with pytest.raises(AssetGateError, match="already exists") as exc:
            client.generate_presigned("image/png", asset_id="dup")
    assert exc.value.status_code == 409


def test_id_actions_wrap_refs():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=[])

    with _client(handler) as client:
        client.verify(["a", "b"])
        client.get_url(["a"])
        client.delete(["b"])

    assert [b["action"] for b in bodies] == ["verifyAsset", "getPresignedUrl", "deleteAsset"]
    assert bodies[0]["args"] == [{"id": "a"}, {"id": "b"}]


def test_upload_posts_form_then_verifies(tmp_path, monkeypatch):
    src = tmp_path / "cat.png"
    src.write_bytes(b"\x89PNG")
    actions = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        actions.append(body["action"])
        if body["action"] == "generatePresignedPostPolicy":
            assert body["args"]["fileType"] == "image/png"
            return httpx.Response(200, json={"id": "a1", "url": "http://s3/b", "data": {"key": "default/a1/cat.png"}})
        return httpx.Response(200, json=[{"id": "a1", "verified": True}])

    posted = {}

    def fake_post(url, data, files, timeout):
        posted["url"] = url
        posted["data"] = data
        return httpx.Response(204, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)
    with _client(handler) as client:
        grant = client.upload(src, verify=True)

    assert grant["id"] == "a1"
    assert posted == {"url": "http://s3/b", "data": {"key": "default/a1/cat.png"}}
    assert actions == ["generatePresignedPostPolicy", "verifyAsset"]


def test_upload_does_not_retry_policy_rejection(tmp_path, monkeypatch):
    src = tmp_path / "big.bin"
    src.write_bytes(b"x")
    calls = []

    def fake_post(url, data, files, timeout):
        calls.append(url)
        return httpx.Response(403, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)
    client = AssetGateClient("http://api.test")
    with pytest.raises(httpx.HTTPStatusError):
        client._post_file_with_retry("http://s3/b", {"key": "k"}, src, "application/octet-stream")
    assert len(calls) == 1

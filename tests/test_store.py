import pytest

from custom_components.caregiver_monitor.store import (
    RemoteStoreReader,
    StoreSnapshot,
    apply_event,
    iter_sse,
)


async def _lines(*chunks):
    for chunk in chunks:
        yield chunk


def test_put_root_replaces_tree():
    tree = apply_event({"old": 1}, "put", {"path": "/", "data": {"a": {"type": "Emergency"}}})
    assert tree == {"a": {"type": "Emergency"}}


def test_put_child_and_delete():
    tree = {"a": {"type": "Emergency"}}
    tree = apply_event(tree, "put", {"path": "/b", "data": {"type": "Medicine Taken"}})
    assert set(tree) == {"a", "b"}
    tree = apply_event(tree, "put", {"path": "/a", "data": None})
    assert tree == {"b": {"type": "Medicine Taken"}}
    assert apply_event(tree, "put", {"path": "/b", "data": None}) is None


def test_patch_merges_children():
    tree = {"r1": {"time": "09:00", "active": True}}
    tree = apply_event(tree, "patch", {"path": "/r1", "data": {"active": False, "days": ["Mon"]}})
    assert tree == {"r1": {"time": "09:00", "active": False, "days": ["Mon"]}}


def test_put_does_not_mutate_previous_snapshot():
    before = {"a": {"x": 1}}
    after = apply_event(before, "put", {"path": "/a/x", "data": 2})
    assert before == {"a": {"x": 1}}
    assert after == {"a": {"x": 2}}


def test_list_nodes_become_maps():
    tree = apply_event(["zero", "one"], "put", {"path": "/2", "data": "two"})
    assert tree == {"0": "zero", "1": "one", "2": "two"}


@pytest.mark.asyncio
async def test_iter_sse_parses_events():
    body = _lines(
        b"event: put\n",
        b'data: {"path": "/", "data": null}\n',
        b"\n",
        b": comment\n",
        b"event: keep-alive\n",
        b"data: null\n",
        b"\n",
        b"event: cancel\n",
        b"data: permission denied\n",
    )
    events = [e async for e in iter_sse(body)]
    assert events == [
        ("put", '{"path": "/", "data": null}'),
        ("keep-alive", "null"),
        ("cancel", "permission denied"),
    ]


class _FakeResponse:
    def __init__(self, chunks):
        self.content = _lines(*chunks)

    def raise_for_status(self):
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _FakeSession:
    def __init__(self, chunks):
        self.chunks = chunks
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        return _FakeResponse(self.chunks)


@pytest.mark.asyncio
async def test_stream_pushes_snapshots_until_cancel(hass):
    reader = RemoteStoreReader(hass, "https://demo.firebaseio.com/", "secret")
    session = _FakeSession(
        [
            b"event: put\n",
            b'data: {"path": "/", "data": {"-a": {"type": "Emergency"}}}\n',
            b"\n",
            b"event: keep-alive\n",
            b"data: null\n",
            b"\n",
            b"event: put\n",
            b'data: {"path": "/-a", "data": null}\n',
            b"\n",
            b"event: cancel\n",
            b"data: permission denied\n",
            b"\n",
        ]
    )
    reader._session = session
    snapshots = []

    await reader._async_stream("events/box1", snapshots.append)

    assert snapshots == [
        StoreSnapshot(exists=True, value={"-a": {"type": "Emergency"}}),
        StoreSnapshot(exists=False, value=None),
    ]
    url, kwargs = session.requests[0]
    assert url == "https://demo.firebaseio.com/events/box1.json"
    assert kwargs["params"] == {"auth": "secret"}
    assert kwargs["headers"] == {"Accept": "text/event-stream"}


@pytest.mark.asyncio
async def test_push_returns_generated_key(hass, aioclient_mock):
    aioclient_mock.post("https://demo.firebaseio.com/messages/box1.json", json={"name": "-Nabc"})
    reader = RemoteStoreReader(hass, "https://demo.firebaseio.com")

    key = await reader.async_push("messages/box1", {"text": "hi"})

    assert key == "-Nabc"
    assert aioclient_mock.mock_calls[0][2] == {"text": "hi"}

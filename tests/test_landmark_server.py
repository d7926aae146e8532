import asyncio
import math

import pytest

from attractors import StreamAttractors
from controls import InputAggregator
from landmark_server import create_app
from params import Params


@pytest.fixture
def stream():
    return StreamAttractors()


@pytest.fixture
def controls(stream):
    return InputAggregator(Params(num_particles=4), source=stream)


@pytest.fixture
async def client(aiohttp_client, controls):
    return await aiohttp_client(create_app(controls))


async def test_post_points(client, stream):
    resp = await client.post("/landmarks", json={"points": [[0, 0, 0], [1, 2, 3]]})
    assert resp.status == 200
    data = await resp.json()
    assert data["ok"] is True
    assert data["count"] == 2
    assert stream.latest().tolist() == [[0, 0, 0], [1, 2, 3]]


async def test_post_landmark_dicts_replaces_previous(client, stream):
    await client.post("/landmarks", json={"points": [[0, 0, 0], [1, 1, 1]]})
    resp = await client.post("/landmarks", json={"landmarks": [{"x": 4, "y": 5, "z": 6}]})
    assert (await resp.json())["count"] == 1
    assert stream.latest().tolist() == [[4, 5, 6]]


async def test_empty_post_clears(client, stream):
    await client.post("/landmarks", json={"points": [[0, 0, 0]]})
    resp = await client.post("/landmarks", json={"points": []})
    assert (await resp.json())["count"] == 0
    assert len(stream.latest()) == 0


async def test_nan_points_are_dropped(client, stream):
    resp = await client.post("/landmarks", json={"points": [[math.nan, 0, 0], [1, 1, 1]]})
    assert resp.status == 200
    assert (await resp.json())["count"] == 1


@pytest.mark.parametrize("body", [
    {"points": [[1, 2]]},
    {"points": [["a", "b", "c"]]},
    {"landmarks": [{"x": 1}]},
    {"points": 5},
    {"points": True},
    {"landmarks": 1.5},
])
async def test_malformed_landmarks_rejected(client, stream, body):
    stream.publish([[9, 9, 9]])
    resp = await client.post("/landmarks", json=body)
    assert resp.status == 400
    assert (await resp.json())["ok"] is False
    assert stream.latest().tolist() == [[9, 9, 9]]


async def test_non_json_body_rejected(client):
    resp = await client.post("/landmarks", data=b"not json")
    assert resp.status == 400
    resp = await client.post("/landmarks", json=[1, 2, 3])
    assert resp.status == 400


async def test_pointer_and_wheel(client, controls):
    resp = await client.post("/pointer", json={"x": 1.0, "y": -0.5})
    assert resp.status == 200
    assert controls.target_rotation == pytest.approx((-0.2, 0.4))

    resp = await client.post("/wheel", json={"deltaY": 100000})
    assert (await resp.json())["target_zoom"] == 30.0

    resp = await client.post("/wheel", json={"delta": 1})
    assert resp.status == 400
    resp = await client.post("/pointer", json={"x": "left"})
    assert resp.status == 400


async def test_state(client, stream):
    stream.publish([[0, 0, 0], [1, 1, 1], [2, 2, 2]])
    resp = await client.get("/state")
    data = await resp.json()
    assert data["target_zoom"] == 15.0
    assert data["target_rotation"] == [0.0, 0.0]
    assert data["attractors"] == 3
    assert data["viewers"] == 0


async def test_viewers_receive_broadcasts(client):
    ws = await client.ws_connect("/ws")
    for _ in range(100):
        if (await (await client.get("/state")).json())["viewers"] == 1:
            break
        await asyncio.sleep(0.01)

    await client.post("/wheel", json={"deltaY": 100})
    msg = await ws.receive_json(timeout=2)
    assert msg == {"type": "wheel", "zoom": pytest.approx(16.0)}

    await client.post("/landmarks", json={"points": [[0, 0, 0]]})
    msg = await ws.receive_json(timeout=2)
    assert msg == {"type": "landmarks", "count": 1}
    await ws.close()


async def test_no_stream_attached(aiohttp_client):
    controls = InputAggregator(Params(num_particles=4))
    client = await aiohttp_client(create_app(controls))
    resp = await client.post("/landmarks", json={"points": []})
    assert resp.status == 409


async def test_server_feed_revives_failed_stream(client, stream):
    stream.fail(RuntimeError("camera denied"))
    assert not stream.available
    resp = await client.post("/landmarks", json={"points": [[0, 0, 0]]})
    assert resp.status == 200
    assert stream.available

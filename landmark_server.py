"""
Remote input server.

Lets another process (a tracker on a different machine, a phone, a test
script) drive the scene over HTTP, and lets viewers watch updates on a
websocket:

  POST /landmarks  {"points": [[x,y,z], ...]} or {"landmarks": [{x,y,z}, ...]}
  POST /pointer    {"x": -1..1, "y": -1..1}
  POST /wheel      {"deltaY": float}
  GET  /state
  GET  /ws
"""

import asyncio
import json
import threading

from aiohttp import web

from attractors import StreamAttractors, parse_landmarks

AGGREGATOR_KEY = web.AppKey("aggregator", object)
STREAM_KEY = web.AppKey("stream", object)
CLIENTS_KEY = web.AppKey("clients", set)


def _bad_request(msg):
    return web.json_response({"ok": False, "error": msg}, status=400)


async def _read_json(request):
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


async def _broadcast(app, data: dict):
    clients = app[CLIENTS_KEY]
    if not clients:
        return
    payload = json.dumps(data)
    dead = []
    for ws in list(clients):
        try:
            await ws.send_str(payload)
        except (ConnectionError, RuntimeError):
            dead.append(ws)
    for ws in dead:
        clients.discard(ws)


async def ws_handler(request):
    ws = web.WebSocketResponse()
    await ws.prepare(request)

    clients = request.app[CLIENTS_KEY]
    clients.add(ws)
    print("Viewer connected:", len(clients))

    try:
        async for _ in ws:
            pass
    finally:
        clients.discard(ws)
        print("Viewer disconnected:", len(clients))

    return ws


async def post_landmarks(request):
    stream = request.app[STREAM_KEY]
    if stream is None:
        return web.json_response({"ok": False, "error": "no landmark stream attached"}, status=409)

    data = await _read_json(request)
    if data is None:
        return _bad_request("body must be a JSON object")

    raw = data.get("points", data.get("landmarks", []))
    try:
        pts = parse_landmarks(raw)
    except ValueError as e:
        return _bad_request(str(e))

    count = stream.publish(pts)
    await _broadcast(request.app, {"type": "landmarks", "count": count})
    return web.json_response({"ok": True, "count": count, "viewers": len(request.app[CLIENTS_KEY])})


async def post_pointer(request):
    data = await _read_json(request)
    if data is None:
        return _bad_request("body must be a JSON object")
    try:
        x = float(data["x"])
        y = float(data["y"])
    except (KeyError, TypeError, ValueError):
        return _bad_request("pointer needs numeric x and y")

    rot = request.app[AGGREGATOR_KEY].on_pointer(x, y)
    await _broadcast(request.app, {"type": "pointer", "rotation": list(rot)})
    return web.json_response({"ok": True, "target_rotation": list(rot)})


async def post_wheel(request):
    data = await _read_json(request)
    if data is None:
        return _bad_request("body must be a JSON object")
    try:
        delta = float(data["deltaY"])
    except (KeyError, TypeError, ValueError):
        return _bad_request("wheel needs numeric deltaY")

    zoom = request.app[AGGREGATOR_KEY].on_wheel(delta)
    await _broadcast(request.app, {"type": "wheel", "zoom": zoom})
    return web.json_response({"ok": True, "target_zoom": zoom})


async def get_state(request):
    sig = request.app[AGGREGATOR_KEY].snapshot()
    return web.json_response({
        "target_zoom": sig.target_zoom,
        "target_rotation": list(sig.target_rotation),
        "attractors": int(len(sig.attractors)),
        "viewers": len(request.app[CLIENTS_KEY]),
    })


def create_app(aggregator, stream: StreamAttractors = None):
    if stream is None and isinstance(aggregator.source, StreamAttractors):
        stream = aggregator.source

    app = web.Application()
    app[AGGREGATOR_KEY] = aggregator
    app[STREAM_KEY] = stream
    app[CLIENTS_KEY] = set()

    app.router.add_get("/ws", ws_handler)
    app.router.add_get("/state", get_state)
    app.router.add_post("/landmarks", post_landmarks)
    app.router.add_post("/pointer", post_pointer)
    app.router.add_post("/wheel", post_wheel)
    return app


def serve_in_thread(app, host="0.0.0.0", port=8765):
    """Run the app on a daemon thread with its own event loop."""

    def worker():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(app)
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, host, port)
        try:
            loop.run_until_complete(site.start())
        except OSError as e:
            print(f"⚠️  Input server failed to bind {host}:{port}: {e}")
            loop.run_until_complete(runner.cleanup())
            loop.close()
            return
        print(f"✅ Input server on http://{host}:{port}")
        loop.run_forever()

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    return thread


if __name__ == "__main__":
    from controls import InputAggregator
    from params import Params

    stream = StreamAttractors()
    web.run_app(create_app(InputAggregator(Params(), source=stream)), host="0.0.0.0", port=8765)

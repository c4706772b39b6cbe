"""Test the Ollama gateway against a local aiohttp server"""
import json

import pytest
from aiohttp import web
from aiohttp import test_utils

from docqa.exceptions import GenerationError
from docqa.ollama_client import OllamaClient

from fakes import collect, run


def _ndjson_handler(lines, status=200):
    async def handler(request):
        request.app["bodies"].append(await request.json())
        response = web.StreamResponse(status=status, headers={"Content-Type": "application/x-ndjson"})
        await response.prepare(request)
        for line in lines:
            await response.write((json.dumps(line) + "\n").encode("utf-8"))
        await response.write_eof()
        return response
    return handler


async def _with_server(handler, scenario):
    app = web.Application()
    app["bodies"] = []
    app.router.add_post("/api/generate", handler)
    server = test_utils.TestServer(app, host="127.0.0.1")
    await server.start_server()
    try:
        client = OllamaClient(model="llama3:8b", base_url=str(server.make_url("")).rstrip("/"), num_thread=2)
        return await scenario(client), app["bodies"]
    finally:
        await server.close()


def test_stream_yields_tokens_then_done():
    handler = _ndjson_handler([
        {"response": "Hel", "done": False},
        {"response": "lo", "done": False},
        {"response": "", "done": True, "done_reason": "stop"},
    ])

    chunks, bodies = run(_with_server(handler, lambda c: collect(c.stream("prompt", 123))))

    assert [c.text for c in chunks if c.text] == ["Hel", "lo"]
    assert chunks[-1].done and chunks[-1].done_reason == "stop"
    assert sum(1 for c in chunks if c.done) == 1

    body = bodies[0]
    assert body["stream"] is True
    assert body["keep_alive"] == -1
    assert body["options"]["num_predict"] == 123
    assert body["options"]["num_thread"] == 2
    assert body["options"]["temperature"] == 0.2


def test_stream_reports_length_limit():
    handler = _ndjson_handler([
        {"response": "cut", "done": False},
        {"response": "", "done": True, "done_reason": "length"},
    ])
    chunks, _ = run(_with_server(handler, lambda c: collect(c.stream("prompt", 10))))
    assert chunks[-1].done_reason == "length"


def test_stream_without_done_marker_still_terminates():
    handler = _ndjson_handler([{"response": "partial", "done": False}])
    chunks, _ = run(_with_server(handler, lambda c: collect(c.stream("prompt", 10))))
    assert chunks[-1].done
    assert chunks[-1].done_reason == "missing_done"


def test_stream_error_line_raises():
    handler = _ndjson_handler([{"error": "model not found"}])
    with pytest.raises(GenerationError):
        run(_with_server(handler, lambda c: collect(c.stream("prompt", 10))))


def test_http_error_raises():
    async def handler(request):
        return web.Response(status=500, text="boom")
    with pytest.raises(GenerationError):
        run(_with_server(handler, lambda c: collect(c.stream("prompt", 10))))


def test_blocking_generate():
    async def handler(request):
        request.app["bodies"].append(await request.json())
        return web.json_response({"response": "Answer text", "done": True, "done_reason": "length"})

    result, bodies = run(_with_server(handler, lambda c: c.generate("prompt", 50)))

    assert result.text == "Answer text"
    assert result.truncated
    assert bodies[0]["stream"] is False


def test_connection_refused_raises():
    client = OllamaClient(base_url="http://127.0.0.1:9", connect_timeout=1)
    with pytest.raises(GenerationError):
        run(collect(client.stream("prompt", 10)))

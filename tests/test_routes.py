"""Test the HTTP API"""
import json

PARAGRAPHS = (
    "The harbor town welcomes ships every morning at dawn.\n\n"
    "Zephyrium is a rare mineral used for cooling reactors.\n\n"
    "Local bakers sell warm bread near the old market square."
)


def _upload(client, content=PARAGRAPHS.encode("utf-8"), filename="notes.txt", chunk_size=100):
    return client.post(
        "/api/documents/upload",
        files={"file": (filename, content, "text/plain")},
        data={"chunk_size": str(chunk_size)},
    )


def _sse_events(response):
    events = []
    for line in response.text.splitlines():
        if line.startswith("data: "):
            events.append(json.loads(line[len("data: "):]))
    return events


def test_upload_document(client):
    response = _upload(client)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "PROCESSED"
    assert data["total_chunks"] >= 3

    listing = client.get("/api/documents").json()
    assert [d["id"] for d in listing] == [data["document_id"]]


def test_upload_rejects_unsupported_type(client):
    response = _upload(client, content=b"\x89PNG", filename="image.png")
    assert response.status_code == 415


def test_upload_rejects_empty_text(client):
    response = _upload(client, content=b"   ")
    assert response.status_code == 422


def test_get_and_delete_document(client):
    document_id = _upload(client).json()["document_id"]

    assert client.get(f"/api/documents/{document_id}").json()["filename"] == "notes.txt"
    assert client.delete(f"/api/documents/{document_id}").json() == {"ok": True, "deleted": document_id}
    assert client.get(f"/api/documents/{document_id}").status_code == 404


def test_ask_stream_protocol(client):
    _upload(client)

    response = client.post("/api/ask_stream", json={"question": "What is zephyrium used for?"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _sse_events(response)
    types = [e["type"] for e in events]
    assert types[:2] == ["conversation_id", "user_message_saved"]
    assert types[-1] == "done"
    assert set(types[2:-1]) == {"token"}

    conversation_id = events[0]["conversation_id"]
    thread = client.get(f"/api/conversations/{conversation_id}").json()
    assert [m["role"] for m in thread] == ["user", "assistant"]
    assert thread[1]["id"] == events[-1]["assistant_message_id"]


def test_ask_stream_without_documents_ends_with_error(client):
    response = client.post("/api/ask_stream", json={"question": "Anything there?"})

    events = _sse_events(response)
    assert events[-1]["type"] == "error"
    assert events[-1]["code"] == "no_documents"


def test_branch_navigation(client):
    _upload(client)
    first = _sse_events(client.post("/api/ask_stream", json={"question": "What is zephyrium used for?"}))
    conversation_id = first[0]["conversation_id"]
    original_id = first[1]["id"]

    edited = _sse_events(client.post("/api/ask_stream", json={
        "question": "Is zephyrium rare?",
        "conversation_id": conversation_id,
        "is_edit": True,
    }))
    edited_id = edited[0]["id"]

    siblings = client.get(f"/api/conversations/{conversation_id}/messages/{edited_id}/siblings").json()
    assert [(s["id"], s["sibling_index"], s["sibling_count"]) for s in siblings] == [
        (original_id, 1, 2),
        (edited_id, 2, 2),
    ]

    old_branch = client.get(f"/api/conversations/{conversation_id}/thread/{original_id}").json()
    assert [m["id"] for m in old_branch][0] == original_id
    assert len(old_branch) == 2


def test_conversation_not_found(client):
    assert client.get("/api/conversations/999").status_code == 404
    assert client.get("/api/conversations/999/thread/1").status_code == 404
    assert client.delete("/api/conversations/999").status_code == 404


def test_list_and_delete_conversations(client):
    _upload(client)
    events = _sse_events(client.post("/api/ask_stream", json={"question": "What is zephyrium used for?"}))
    conversation_id = events[0]["conversation_id"]

    listing = client.get("/api/conversations").json()
    assert [c["id"] for c in listing] == [conversation_id]
    assert listing[0]["title"] == "What is zephyrium used for?"

    assert client.delete(f"/api/conversations/{conversation_id}").json()["ok"] is True
    assert client.get("/api/conversations").json() == []


def test_blocking_ask(client):
    _upload(client)
    response = client.post("/api/ask", json={"question": "What is zephyrium used for?"})
    assert response.status_code == 200
    assert response.json()["answer"] == "Paris is the capital."


def test_blocking_ask_without_documents(client):
    response = client.post("/api/ask", json={"question": "What is zephyrium used for?"})
    assert response.status_code == 404


def test_document_scoped_ask(client):
    document_id = _upload(client).json()["document_id"]
    response = client.post(f"/api/documents/{document_id}/ask", json={"question": "Is zephyrium rare?"})
    assert response.status_code == 200
    assert "Zephyrium is a rare mineral" in response.json()["passages"][0]

    assert client.post("/api/documents/999/ask", json={"question": "Is zephyrium rare?"}).status_code == 404


def test_models_and_status(client):
    models = client.get("/api/models").json()
    assert "multi-qa-MiniLM-L6-cos-v1" in models["embedding"]
    assert "ollama" in models["generation"]

    status = client.get("/api/status").json()
    assert status["generator"]["available"] is True
    assert status["embedding_model"] == "multi-qa-MiniLM-L6-cos-v1"

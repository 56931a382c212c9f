"""
API Tests

HTTP surface with storage-free dependency overrides.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from docuchat.deps import get_chunk_store, get_conversation_repository, get_document_repository
from docuchat.errors import UpstreamModelError
from docuchat.main import app
from docuchat.services.embedding import get_embedder
from docuchat.services.llm import get_chat_model
from docuchat.services.rag import NOT_FOUND_RESPONSE
from docuchat.services.storage import get_storage
from tests.fakes import (
    FakeChatModel,
    FakeConversationRepository,
    FakeDocumentRepository,
    FakeEmbedder,
    FakeStorage,
    MemoryChunkStore,
)


@pytest.fixture
def overrides():
    deps = SimpleNamespace(
        documents=FakeDocumentRepository(),
        store=MemoryChunkStore(),
        embedder=FakeEmbedder(default=[1.0, 0.0]),
        storage=FakeStorage(),
        conversations=FakeConversationRepository(),
        chat_model=FakeChatModel(),
    )
    app.dependency_overrides[get_document_repository] = lambda: deps.documents
    app.dependency_overrides[get_chunk_store] = lambda: deps.store
    app.dependency_overrides[get_embedder] = lambda: deps.embedder
    app.dependency_overrides[get_storage] = lambda: deps.storage
    app.dependency_overrides[get_conversation_repository] = lambda: deps.conversations
    app.dependency_overrides[get_chat_model] = lambda: deps.chat_model
    yield deps
    app.dependency_overrides.clear()


def _client():
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _headers(user_id):
    return {"X-User-Id": str(user_id)}


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self):
        async with _client() as client:
            resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestSearch:
    @pytest.mark.asyncio
    async def test_results_from_completed_documents(self, overrides):
        user_id = uuid4()
        done = overrides.documents.add(user_id=user_id, status="completed")
        pending = overrides.documents.add(user_id=user_id, status="processing")
        await overrides.store.add_chunk(done.id, "matching passage", [1.0, 0.1], 0)
        await overrides.store.add_chunk(pending.id, "not ready yet", [1.0, 0.0], 0)

        async with _client() as client:
            resp = await client.post(
                "/v1/search",
                json={"user_id": str(user_id), "query": "passage"},
                headers=_headers(user_id),
            )

        assert resp.status_code == 200
        results = resp.json()["results"]
        assert [r["content"] for r in results] == ["matching passage"]
        assert results[0]["score"] > 0.3

    @pytest.mark.asyncio
    async def test_no_documents(self, overrides):
        user_id = uuid4()

        async with _client() as client:
            resp = await client.post(
                "/v1/search",
                json={"user_id": str(user_id), "query": "anything"},
                headers=_headers(user_id),
            )

        assert resp.status_code == 200
        assert resp.json() == {"results": []}
        assert overrides.embedder.calls == []

    @pytest.mark.asyncio
    async def test_other_users_documents_are_forbidden(self, overrides):
        async with _client() as client:
            resp = await client.post(
                "/v1/search",
                json={"user_id": str(uuid4()), "query": "anything"},
                headers=_headers(uuid4()),
            )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_embedding_outage_is_an_error(self, overrides):
        user_id = uuid4()
        doc = overrides.documents.add(user_id=user_id, status="completed")
        await overrides.store.add_chunk(doc.id, "text", [1.0, 0.0], 0)
        overrides.embedder.fail_on.add("anything")

        async with _client() as client:
            resp = await client.post(
                "/v1/search",
                json={"user_id": str(user_id), "query": "anything"},
                headers=_headers(user_id),
            )

        assert resp.status_code == 502
        assert "results" not in resp.json()

    @pytest.mark.asyncio
    async def test_caller_header_required(self, overrides):
        async with _client() as client:
            resp = await client.post("/v1/search", json={"user_id": str(uuid4()), "query": "q"})
        assert resp.status_code == 422


class TestQuery:
    @pytest.mark.asyncio
    async def test_first_message_creates_conversation_and_stores_turn(self, overrides):
        user_id = uuid4()

        async with _client() as client:
            resp = await client.post(
                "/v1/chat/query", json={"message": "Hello there", "rag_enabled": False}, headers=_headers(user_id)
            )

        assert resp.status_code == 200
        body = resp.json()
        assert body["response"] == "model answer"
        assert body["rag_used"] is False
        conv = overrides.conversations.conversations[UUID(body["conversation_id"])]
        assert conv.user_id == user_id
        assert conv.rag_enabled is False
        stored = overrides.conversations.messages_by_conversation[conv.id]
        assert [(m.role, m.content) for m in stored] == [("user", "Hello there"), ("assistant", "model answer")]
        assert stored[1].meta["rag_used"] is False
        assert overrides.conversations.commits == 1

    @pytest.mark.asyncio
    async def test_rag_disabled_never_searches(self, overrides):
        user_id = uuid4()
        doc = overrides.documents.add(user_id=user_id, status="completed")
        await overrides.store.add_chunk(doc.id, "a relevant passage", [1.0, 0.0], 0)

        async with _client() as client:
            resp = await client.post(
                "/v1/chat/query", json={"message": "question", "rag_enabled": False}, headers=_headers(user_id)
            )

        assert resp.status_code == 200
        assert resp.json()["rag_used"] is False
        assert overrides.store.match_calls == 0
        assert overrides.embedder.calls == []

    @pytest.mark.asyncio
    async def test_history_comes_back_in_turn_order(self, overrides):
        user_id = uuid4()

        async with _client() as client:
            first = await client.post(
                "/v1/chat/query", json={"message": "first question", "rag_enabled": False}, headers=_headers(user_id)
            )
            conversation_id = first.json()["conversation_id"]
            second = await client.post(
                "/v1/chat/query",
                json={"message": "second question", "conversation_id": conversation_id},
                headers=_headers(user_id),
            )
            listed = await client.get(f"/v1/conversations/{conversation_id}/messages", headers=_headers(user_id))

        assert second.status_code == 200
        assert second.json()["conversation_id"] == conversation_id
        sent = overrides.chat_model.calls[1]
        assert [(m["role"], m["content"]) for m in sent[1:]] == [
            ("user", "first question"),
            ("assistant", "model answer"),
            ("user", "second question"),
        ]
        assert [m["role"] for m in listed.json()] == ["user", "assistant", "user", "assistant"]

    @pytest.mark.asyncio
    async def test_answer_grounded_in_matching_chunk(self, overrides):
        user_id = uuid4()
        doc = overrides.documents.add(user_id=user_id, status="completed")
        await overrides.store.add_chunk(doc.id, "The warranty lasts two years.", [1.0, 0.0], 0)

        async with _client() as client:
            resp = await client.post(
                "/v1/chat/query", json={"message": "How long is the warranty?"}, headers=_headers(user_id)
            )

        assert resp.status_code == 200
        assert resp.json()["rag_used"] is True
        system = overrides.chat_model.calls[0][0]["content"]
        assert "The warranty lasts two years." in system

    @pytest.mark.asyncio
    async def test_no_matching_chunk_answers_without_model(self, overrides):
        user_id = uuid4()
        doc = overrides.documents.add(user_id=user_id, status="completed")
        await overrides.store.add_chunk(doc.id, "unrelated", [0.0, 1.0], 0)

        async with _client() as client:
            resp = await client.post("/v1/chat/query", json={"message": "anything?"}, headers=_headers(user_id))

        assert resp.status_code == 200
        assert resp.json()["response"] == NOT_FOUND_RESPONSE
        assert resp.json()["rag_used"] is True
        assert overrides.chat_model.calls == []

    @pytest.mark.asyncio
    async def test_foreign_conversation_is_not_found(self, overrides):
        other = await overrides.conversations.create(uuid4(), "someone else's")

        async with _client() as client:
            resp = await client.post(
                "/v1/chat/query",
                json={"message": "hi", "conversation_id": str(other.id)},
                headers=_headers(uuid4()),
            )

        assert resp.status_code == 404
        assert overrides.chat_model.calls == []
        assert overrides.conversations.commits == 0

    @pytest.mark.asyncio
    async def test_model_failure_is_bad_gateway(self, overrides):
        overrides.chat_model.error = UpstreamModelError("OpenAI API error: 500")

        async with _client() as client:
            resp = await client.post(
                "/v1/chat/query", json={"message": "hi", "rag_enabled": False}, headers=_headers(uuid4())
            )

        assert resp.status_code == 502
        assert overrides.conversations.conversations == {}
        assert overrides.conversations.commits == 0


class TestDocuments:
    @pytest.mark.asyncio
    async def test_upload_stores_file_and_ingests_in_background(self, overrides):
        user_id = uuid4()

        async with _client() as client:
            resp = await client.post(
                "/v1/documents/upload",
                files={"file": ("notes.txt", b"hello world", "text/plain")},
                headers=_headers(user_id),
            )

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "processing"
        doc = overrides.documents.docs[UUID(body["document_id"])]
        assert doc.user_id == user_id
        assert doc.title == "notes.txt"
        assert overrides.storage.files[doc.file_path] == b"hello world"
        assert doc.file_path.startswith(f"{user_id}/")
        assert doc.status == "completed"
        assert [r.content for r in overrides.store.for_document(doc.id)] == ["hello world"]

    @pytest.mark.asyncio
    async def test_empty_upload_rejected(self, overrides):
        async with _client() as client:
            resp = await client.post(
                "/v1/documents/upload",
                files={"file": ("empty.txt", b"", "text/plain")},
                headers=_headers(uuid4()),
            )

        assert resp.status_code == 400
        assert overrides.documents.docs == {}

    @pytest.mark.asyncio
    async def test_ingest_reports_chunks(self, overrides):
        user_id = uuid4()
        doc = overrides.documents.add(user_id=user_id)
        overrides.storage.files[doc.file_path] = b"x" * 2500

        async with _client() as client:
            resp = await client.post(f"/v1/documents/{doc.id}/ingest", headers=_headers(user_id))
            again = await client.post(f"/v1/documents/{doc.id}/ingest", headers=_headers(user_id))

        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"
        assert resp.json()["chunks_processed"] == 3
        assert again.status_code == 409

    @pytest.mark.asyncio
    async def test_ingest_failure_is_recorded(self, overrides):
        user_id = uuid4()
        doc = overrides.documents.add(user_id=user_id, file_path="gone.txt")

        async with _client() as client:
            resp = await client.post(f"/v1/documents/{doc.id}/ingest", headers=_headers(user_id))

        assert resp.status_code == 500
        assert doc.status == "failed"
        assert "Failed to download document" in doc.error_message

    @pytest.mark.asyncio
    async def test_other_users_document_is_not_found(self, overrides):
        doc = overrides.documents.add(user_id=uuid4())

        async with _client() as client:
            ingest = await client.post(f"/v1/documents/{doc.id}/ingest", headers=_headers(uuid4()))
            fetch = await client.get(f"/v1/documents/{doc.id}", headers=_headers(uuid4()))

        assert ingest.status_code == 404
        assert fetch.status_code == 404
        assert doc.status == "processing"

    @pytest.mark.asyncio
    async def test_get_document_shows_progress(self, overrides):
        user_id = uuid4()
        doc = overrides.documents.add(user_id=user_id, processing_progress=40)

        async with _client() as client:
            resp = await client.get(f"/v1/documents/{doc.id}", headers=_headers(user_id))

        assert resp.status_code == 200
        assert resp.json()["status"] == "processing"
        assert resp.json()["processing_progress"] == 40

    @pytest.mark.asyncio
    async def test_reprocess_rebuilds_chunks(self, overrides):
        user_id = uuid4()
        doc = overrides.documents.add(user_id=user_id, status="failed", error_message="boom")
        overrides.storage.files[doc.file_path] = b"fresh text"
        await overrides.store.add_chunk(doc.id, "stale chunk", [1.0, 0.0], 0)

        async with _client() as client:
            resp = await client.post(f"/v1/documents/{doc.id}/reprocess", headers=_headers(user_id))

        assert resp.status_code == 202
        assert doc.status == "completed"
        assert doc.error_message is None
        assert [r.content for r in overrides.store.for_document(doc.id)] == ["fresh text"]

    @pytest.mark.asyncio
    async def test_reprocess_refused_while_claim_is_live(self, overrides):
        user_id = uuid4()
        doc = overrides.documents.add(user_id=user_id, ingestion_started_at=datetime.now(timezone.utc))

        async with _client() as client:
            resp = await client.post(f"/v1/documents/{doc.id}/reprocess", headers=_headers(user_id))

        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_reprocess_takes_over_abandoned_claim(self, overrides):
        user_id = uuid4()
        abandoned = datetime.now(timezone.utc) - timedelta(seconds=overrides.documents.lease_seconds + 60)
        doc = overrides.documents.add(user_id=user_id, ingestion_started_at=abandoned)
        overrides.storage.files[doc.file_path] = b"recovered"

        async with _client() as client:
            resp = await client.post(f"/v1/documents/{doc.id}/reprocess", headers=_headers(user_id))

        assert resp.status_code == 202
        assert doc.status == "completed"

    @pytest.mark.asyncio
    async def test_delete_removes_row_and_file(self, overrides):
        user_id = uuid4()
        doc = overrides.documents.add(user_id=user_id)
        overrides.storage.files[doc.file_path] = b"bytes"

        async with _client() as client:
            resp = await client.delete(f"/v1/documents/{doc.id}", headers=_headers(user_id))

        assert resp.status_code == 204
        assert doc.id not in overrides.documents.docs
        assert doc.file_path not in overrides.storage.files

# tests/test_ingest.py
import asyncio
import threading
from io import BytesIO

import pytest
from docx import Document as DocxDocument

from docchat.errors import (
    DocumentNotFoundError,
    IngestionError,
    IngestionErrorKind,
    ProviderError,
    ProviderErrorKind,
    VectorStoreError,
    VectorStoreErrorKind,
)
from docchat.memory.ingest import DocumentIngestor, DocumentService
from docchat.memory.loader import extract_text
from docchat.memory.registry import DocumentRegistry

from tests.factories import FakeEmbedder, make_chunk

DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

SENTENCE = "The quick brown fox jumps over the lazy dog. "


def docx_bytes(*paragraphs) -> bytes:
    document = DocxDocument()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def registry():
    return DocumentRegistry()


@pytest.fixture
def ingestor(fake_embedder, fake_vector_store, registry):

    return DocumentIngestor(
        embedder=fake_embedder,
        vector_store=fake_vector_store,
        registry=registry,
        chunk_size=1000,
        chunk_overlap=200,
        max_file_size=10 * 1024 * 1024,
    )


class TestTextExtraction:

    def test_plain_text(self):
        assert extract_text("héllo".encode("utf-8"), "text/plain") == "héllo"

    def test_invalid_utf8_is_replaced(self):
        assert extract_text(b"ok \xff", "text/plain") == "ok \ufffd"

    def test_docx_paragraphs(self):
        content = docx_bytes("First paragraph.", "", "Second paragraph.")

        assert extract_text(content, DOCX_TYPE) == "First paragraph.\nSecond paragraph."

    def test_unsupported_type(self):
        with pytest.raises(IngestionError) as exc_info:
            extract_text(b"<html/>", "text/html")

        assert exc_info.value.kind == IngestionErrorKind.UNSUPPORTED_TYPE

    def test_corrupt_pdf(self):
        with pytest.raises(IngestionError) as exc_info:
            extract_text(b"definitely not a pdf", "application/pdf")

        assert exc_info.value.kind == IngestionErrorKind.EXTRACTION_FAILED


class TestValidation:

    @pytest.mark.asyncio
    async def test_empty_file(self, ingestor):
        with pytest.raises(IngestionError) as exc_info:
            await ingestor.ingest(b"", "empty.txt", "text/plain")

        assert exc_info.value.kind == IngestionErrorKind.EMPTY_FILE

    @pytest.mark.asyncio
    async def test_file_too_large(self, fake_embedder, fake_vector_store, registry):
        ingestor = DocumentIngestor(fake_embedder, fake_vector_store, registry, max_file_size=10)

        with pytest.raises(IngestionError) as exc_info:
            await ingestor.ingest(b"x" * 11, "big.txt", "text/plain")

        assert exc_info.value.kind == IngestionErrorKind.FILE_TOO_LARGE

    @pytest.mark.asyncio
    async def test_unsupported_type(self, ingestor):
        with pytest.raises(IngestionError) as exc_info:
            await ingestor.ingest(b"png", "image.png", "image/png")

        assert exc_info.value.kind == IngestionErrorKind.UNSUPPORTED_TYPE

    @pytest.mark.asyncio
    async def test_whitespace_only_document(self, ingestor, fake_vector_store):
        with pytest.raises(IngestionError) as exc_info:
            await ingestor.ingest(b"   \n\n  ", "blank.txt", "text/plain")

        assert exc_info.value.kind == IngestionErrorKind.NO_TEXT
        fake_vector_store.upsert.assert_not_called()


class TestIngestion:

    @pytest.mark.asyncio
    async def test_three_thousand_character_document(self, ingestor, fake_embedder, fake_vector_store, registry):
        text = (SENTENCE * 100)[:3000]

        document = await ingestor.ingest(text.encode("utf-8"), "fox.txt", "text/plain")

        assert 4 <= document.chunk_count <= 5
        assert len(fake_embedder.calls) == document.chunk_count

        fake_vector_store.upsert.assert_awaited_once()
        records = fake_vector_store.upsert.call_args.args[0]

        assert len(records) == document.chunk_count
        assert [r.metadata.index for r in records] == list(range(document.chunk_count))
        assert all(len(r.metadata.text) <= 1000 for r in records)
        assert all(r.metadata.total_chunks == document.chunk_count for r in records)
        assert all(r.metadata.document_id == document.document_id for r in records)
        assert len({r.metadata.uploaded_at for r in records}) == 1
        assert records[0].id == f"{document.document_id}_chunk_0"

        assert document.filename == "fox.txt"
        assert document.size_bytes == 3000
        assert registry.get(document.document_id) == document

    @pytest.mark.asyncio
    async def test_embeddings_stay_in_chunk_order(self, fake_vector_store, registry):

        class SlowFirstEmbedder(FakeEmbedder):
            async def embed(self, text):
                # The first chunk finishes last
                await asyncio.sleep(0.01 if text.startswith("A") else 0)
                return [float("ABC".index(text[0]))] * self.dimension

        ingestor = DocumentIngestor(
            SlowFirstEmbedder(), fake_vector_store, registry, chunk_size=10, chunk_overlap=0
        )

        await ingestor.ingest_text("AAAAAAAAA BBBBBBBBB CCCCCCCCC", filename="order.txt")

        records = fake_vector_store.upsert.call_args.args[0]
        assert [r.metadata.text for r in records] == ["AAAAAAAAA", "BBBBBBBBB", "CCCCCCCCC"]
        assert [r.embedding[0] for r in records] == [0.0, 1.0, 2.0]

    @pytest.mark.asyncio
    async def test_embedding_concurrency_is_bounded(self, fake_vector_store, registry):
        in_flight = 0
        peak = 0

        class TrackingEmbedder(FakeEmbedder):
            async def embed(self, text):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.001)
                in_flight -= 1
                return [0.0] * self.dimension

        ingestor = DocumentIngestor(
            TrackingEmbedder(),
            fake_vector_store,
            registry,
            chunk_size=50,
            chunk_overlap=0,
            embed_concurrency=2,
        )

        document = await ingestor.ingest_text(SENTENCE * 20, filename="many.txt")

        assert document.chunk_count > 2
        assert peak == 2

    @pytest.mark.asyncio
    async def test_embedding_failure_stops_remaining_embeddings(self, fake_vector_store, registry):
        calls = []

        class FailingEmbedder(FakeEmbedder):
            async def embed(self, text):
                calls.append(text)
                if len(calls) == 1:
                    await asyncio.sleep(0)
                    raise ProviderError(ProviderErrorKind.SERVICE_UNAVAILABLE)
                await asyncio.sleep(0.01)
                return [0.0] * self.dimension

        ingestor = DocumentIngestor(
            FailingEmbedder(),
            fake_vector_store,
            registry,
            chunk_size=50,
            chunk_overlap=0,
            embed_concurrency=2,
        )

        with pytest.raises(ProviderError):
            await ingestor.ingest_text(SENTENCE * 20, filename="broken.txt")

        calls_at_failure = len(calls)

        # Give any surviving task time to reach the provider
        await asyncio.sleep(0.05)

        assert len(calls) == calls_at_failure
        assert calls_at_failure <= 3
        fake_vector_store.upsert.assert_not_called()
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_upsert_failure_registers_nothing(self, ingestor, fake_vector_store, registry):
        fake_vector_store.upsert.side_effect = VectorStoreError(VectorStoreErrorKind.TIMEOUT, "upsert")

        with pytest.raises(VectorStoreError):
            await ingestor.ingest(b"Some text worth indexing.", "a.txt", "text/plain")

        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_docx_upload(self, ingestor, fake_vector_store):
        document = await ingestor.ingest(docx_bytes("Hello from Word."), "memo.docx", DOCX_TYPE)

        assert document.chunk_count == 1
        assert fake_vector_store.upsert.call_args.args[0][0].metadata.text == "Hello from Word."


class TestDocumentService:

    @pytest.mark.asyncio
    async def test_registry_is_written_off_the_event_loop(self, fake_embedder, fake_vector_store, tmp_path):
        saving_threads = []

        class RecordingRegistry(DocumentRegistry):
            def save(self):
                saving_threads.append(threading.current_thread())
                super().save()

        registry = RecordingRegistry(str(tmp_path / "document_registry.json"))
        ingestor = DocumentIngestor(fake_embedder, fake_vector_store, registry)

        document = await ingestor.ingest_text("Short text.", filename="s.txt")
        await DocumentService(fake_vector_store, registry).delete_document(document.document_id)

        assert len(saving_threads) == 2
        assert threading.main_thread() not in saving_threads
        assert (tmp_path / "document_registry.json").read_text() == "{}"

    @pytest.mark.asyncio
    async def test_get_from_registry(self, ingestor, fake_vector_store, registry):
        document = await ingestor.ingest_text("Short text.", filename="s.txt")
        service = DocumentService(fake_vector_store, registry)

        assert await service.get_document(document.document_id) == document
        fake_vector_store.get_document_metadata.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_falls_back_to_index(self, fake_vector_store, registry):
        fake_vector_store.get_document_metadata.return_value = [
            make_chunk(document_id="legacy", index=0, total_chunks=2),
            make_chunk(document_id="legacy", index=1, total_chunks=2),
        ]
        service = DocumentService(fake_vector_store, registry)

        document = await service.get_document("legacy")

        assert document.document_id == "legacy"
        assert document.chunk_count == 2
        assert document.filename == "report.pdf"

    @pytest.mark.asyncio
    async def test_get_unknown(self, fake_vector_store, registry):
        with pytest.raises(DocumentNotFoundError):
            await DocumentService(fake_vector_store, registry).get_document("ghost")

    @pytest.mark.asyncio
    async def test_delete_purges_vectors_and_registry(self, ingestor, fake_vector_store, registry):
        document = await ingestor.ingest_text("Short text.", filename="s.txt")
        service = DocumentService(fake_vector_store, registry)

        await service.delete_document(document.document_id)

        fake_vector_store.delete_by_document_id.assert_awaited_once_with(document.document_id)
        assert document.document_id not in registry
        assert service.list_documents() == []

    @pytest.mark.asyncio
    async def test_delete_unknown(self, fake_vector_store, registry):
        with pytest.raises(DocumentNotFoundError):
            await DocumentService(fake_vector_store, registry).delete_document("ghost")

        fake_vector_store.delete_by_document_id.assert_not_called()

# tests/test_registry.py
import json
from datetime import datetime

from docchat.memory.registry import DocumentRegistry
from docchat.models import UploadedDocument


def document(document_id: str, day: int, chunks: int = 3) -> UploadedDocument:

    return UploadedDocument(
        document_id=document_id,
        filename=f"{document_id}.pdf",
        content_type="application/pdf",
        size_bytes=2048,
        chunk_count=chunks,
        uploaded_at=datetime(2024, 1, day, 9, 30),
    )


class TestDocumentRegistry:

    def test_register_and_lookup(self):
        registry = DocumentRegistry()
        registry.register(document("a", 1))

        assert "a" in registry
        assert registry.get("a").filename == "a.pdf"
        assert registry.get("missing") is None
        assert len(registry) == 1

    def test_list_is_newest_first(self):
        registry = DocumentRegistry()
        registry.register(document("old", 1))
        registry.register(document("new", 3))
        registry.register(document("mid", 2))

        assert [d.document_id for d in registry.list()] == ["new", "mid", "old"]

    def test_total_chunks(self):
        registry = DocumentRegistry()
        registry.register(document("a", 1, chunks=4))
        registry.register(document("b", 2, chunks=6))

        assert registry.total_chunks() == 10

    def test_remove(self):
        registry = DocumentRegistry()
        registry.register(document("a", 1))

        assert registry.remove("a") is True
        assert registry.remove("a") is False
        assert len(registry) == 0

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "storage" / "document_registry.json"

        registry = DocumentRegistry(str(path))
        registry.register(document("a", 1))
        registry.register(document("b", 2))
        registry.remove("a")

        restored = DocumentRegistry(str(path))
        restored.load()

        assert [d.document_id for d in restored.list()] == ["b"]
        assert restored.get("b").uploaded_at == datetime(2024, 1, 2, 9, 30)

        saved = json.loads(path.read_text())
        assert saved["b"]["chunk_count"] == 3

    def test_missing_file_starts_empty(self, tmp_path):
        registry = DocumentRegistry(str(tmp_path / "nope.json"))
        registry.load()

        assert len(registry) == 0

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "document_registry.json"
        path.write_text("{not json")

        registry = DocumentRegistry(str(path))
        registry.load()

        assert len(registry) == 0

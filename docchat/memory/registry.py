# docchat/memory/registry.py

"""
Persistent document registry.

Keeps document-level facts (filename, size, chunk count, upload time) so
listing documents never needs a vector search. Written to JSON after
every change and reloaded at startup.
"""

import json
import logging
import os
import threading
from datetime import datetime
from typing import Dict, List, Optional

from docchat.config import STORAGE_DIR
from docchat.models import UploadedDocument

logger = logging.getLogger(__name__)


class DocumentRegistry:

    def __init__(self, path: Optional[str] = None):

        self._path = path
        self._documents: Dict[str, UploadedDocument] = {}

        # save() runs in a worker thread from async callers
        self._lock = threading.Lock()

    @classmethod
    def default(cls) -> "DocumentRegistry":
        return cls(os.path.join(STORAGE_DIR, "document_registry.json"))

    # ============================================================
    # PERSISTENCE
    # ============================================================

    def load(self):

        if not self._path or not os.path.exists(self._path):
            logger.info("Document registry file not found. Starting fresh.")
            return

        try:

            with open(self._path, "r") as f:
                data = json.load(f)

            restored = {
                doc_id: UploadedDocument.model_validate(meta)
                for doc_id, meta in data.items()
            }

        except (OSError, ValueError) as e:

            logger.error(
                "Document registry load failed",
                extra={"path": self._path, "error": str(e)},
            )

            return

        self._documents.clear()
        self._documents.update(restored)

        logger.info(
            "Document registry loaded",
            extra={"documents": len(self._documents)},
        )

    def save(self):

        if not self._path:
            return

        directory = os.path.dirname(self._path)

        if directory:
            os.makedirs(directory, exist_ok=True)

        serializable = {
            doc_id: doc.model_dump(mode="json")
            for doc_id, doc in self._documents.items()
        }

        with open(self._path, "w") as f:
            json.dump(serializable, f)

    # ============================================================
    # MUTATIONS
    # ============================================================

    def register(self, document: UploadedDocument):

        with self._lock:
            self._documents[document.document_id] = document
            self.save()

    def remove(self, document_id: str) -> bool:

        with self._lock:

            if document_id not in self._documents:
                return False

            del self._documents[document_id]
            self.save()

        return True

    # ============================================================
    # READS
    # ============================================================

    def get(self, document_id: str) -> Optional[UploadedDocument]:
        return self._documents.get(document_id)

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def list(self) -> List[UploadedDocument]:
        """Newest first."""

        with self._lock:
            documents = list(self._documents.values())

        return sorted(
            documents,
            key=lambda d: d.uploaded_at or datetime.min,
            reverse=True,
        )

    def total_chunks(self) -> int:
        with self._lock:
            return sum(d.chunk_count for d in self._documents.values())

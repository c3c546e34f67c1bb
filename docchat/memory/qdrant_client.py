import logging
from typing import Optional

from qdrant_client import AsyncQdrantClient

from qdrant_client.http.models import (
    Distance,
    VectorParams,
    PayloadSchemaType,
)

from docchat.config import (
    QDRANT_URL,
    QDRANT_API_KEY,
    QDRANT_COLLECTION,
)

logger = logging.getLogger(__name__)


class QdrantVectorDB:
    """
    Qdrant connection holder.

    Owns the async client and makes sure the collection and its
    document_id payload index exist. Query logic lives in VectorStore.
    """

    def __init__(
        self,
        dim: int,
        client: Optional[AsyncQdrantClient] = None,
        collection: str = QDRANT_COLLECTION,
    ):

        self._dim = dim

        self.client = client or AsyncQdrantClient(
            url=QDRANT_URL,
            api_key=QDRANT_API_KEY,
            timeout=60,
        )

        self.collection = collection

        logger.info(
            "Qdrant client initialized",
            extra={
                "collection": self.collection,
                "dimension": dim,
            },
        )

    async def ensure_collection(self):
        """
        Ensures collection exists AND the document_id payload index exists.
        """

        collections = (await self.client.get_collections()).collections

        exists = any(
            c.name == self.collection
            for c in collections
        )

        if not exists:

            await self.client.create_collection(
                collection_name=self.collection,
                vectors_config=VectorParams(
                    size=self._dim,
                    distance=Distance.COSINE,
                ),
            )

            logger.info(
                "Qdrant collection created",
                extra={"collection": self.collection},
            )

            # Required for delete, filter and metadata reads
            await self.client.create_payload_index(
                collection_name=self.collection,
                field_name="document_id",
                field_schema=PayloadSchemaType.KEYWORD,
            )

            logger.info(
                "Payload index ensured for document_id",
                extra={"collection": self.collection},
            )

    async def close(self):

        await self.client.close()

from typing import List, Optional

import openai
from openai import AsyncOpenAI

from ..config import settings
from ..errors import ConfigurationError, EmbeddingError


class EmbeddingClient:
    """One embedding request per text; every call succeeds or fails on its own."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, dimensions: Optional[int] = None):
        self.api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self.model = model or settings.OPENAI_EMBED_MODEL
        self.dimensions = dimensions or settings.EMBED_DIM
        self._client: AsyncOpenAI | None = None

    def ensure_configured(self) -> None:
        key = self.api_key or ""
        if not key.strip():
            raise ConfigurationError("OPENAI_API_KEY is not configured or is empty")
        if "\n" in key or "\r" in key:
            raise ConfigurationError("OPENAI_API_KEY contains invalid characters")

    def get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self.ensure_configured()
            self._client = AsyncOpenAI(api_key=self.api_key.strip())
        return self._client

    async def embed(self, text: str) -> List[float]:
        client = self.get_client()
        try:
            resp = await client.embeddings.create(model=self.model, input=text)
        except openai.APIStatusError as e:
            raise EmbeddingError(f"Embedding request failed with status {e.status_code}") from e
        except openai.OpenAIError as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if not resp.data:
            raise EmbeddingError("Embedding response contained no vectors")
        vector = list(resp.data[0].embedding)
        if len(vector) != self.dimensions:
            raise ConfigurationError(
                f"Embedding model {self.model} returned {len(vector)} dimensions, "
                f"the chunk store expects {self.dimensions}"
            )
        return vector


_client: EmbeddingClient | None = None
def get_embedder() -> EmbeddingClient:
    global _client
    if _client is None:
        _client = EmbeddingClient()
    return _client

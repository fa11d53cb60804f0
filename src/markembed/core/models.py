from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class DocumentFormat(str, Enum):
    """Source formats accepted by the normalizer."""

    MARKDOC = "markdoc"  # Markdown with {% tag %} blocks
    MDX = "mdx"  # Markdown with JSX and {expressions}
    HTML = "html"


class SourceDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    content: str
    declared_format: DocumentFormat


class EmbeddingRecord(BaseModel):
    file_id: int
    content: str
    embedding: list[float]
    token_count: int

    def to_row(self) -> dict[str, Any]:
        return {
            "file_id": self.file_id,
            "content": self.content,
            "embedding": self.embedding,
            "token_count": self.token_count,
        }


class IngestionError(BaseModel):
    path: str
    message: str


class EmbedOutcome(BaseModel):
    chunks: int = 0  # inputs sent (or due to be sent) to the provider
    records: list[EmbeddingRecord] = []
    total_tokens: int = 0
    errors: list[IngestionError] = []


class IngestionResult(BaseModel):
    path: str
    file_id: int | None = None
    sections: int = 0  # chunks produced by the splitters
    embedded: int = 0
    total_tokens: int = 0
    errors: list[IngestionError] = []

    @property
    def ok(self) -> bool:
        return not self.errors

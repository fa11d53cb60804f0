"""
File ingestion: normalize, split, embed and store one document.

Only two failures stop a file early, each reported as the file's single
error: the document cannot be parsed, or its file record cannot be found or
created. Everything else is collected in the result's error list.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable, Optional

import structlog

from ..core.config import Settings
from ..core.files import extract_frontmatter, get_file_type
from ..core.logging import log
from ..core.models import IngestionError, IngestionResult, SourceDocument
from ..core.retry import RetryPolicy
from ..db.stores import SectionStore, UsageCounter
from .steps.chunk.budget import token_budget
from .steps.chunk.sections import split_sections
from .steps.embed.driver import EmbeddingDriver
from .steps.embed.provider import EmbeddingProvider
from .steps.normalize.normalizer import UnparseableDocumentError, normalize_document
from .steps.persist.coordinator import PersistenceCoordinator


def read_source_document(path: Path, display_path: Optional[str] = None) -> SourceDocument:
    """Load a file from disk, classifying its format by extension."""
    return SourceDocument(
        path=display_path or path.as_posix(),
        content=path.read_text(encoding="utf-8"),
        declared_format=get_file_type(path.name),
    )


def ingest_path(path: Path, project_id: str, **kwargs: Any) -> IngestionResult:
    """Read one file and ingest it.

    A file that cannot be read or decoded as UTF-8 yields a result with a
    single error instead of raising, so a batch can move on to the next file.
    """
    try:
        doc = read_source_document(path)
    except (OSError, UnicodeDecodeError) as e:
        shown = path.as_posix()
        log.error("ingest.unreadable", path=shown, project_id=project_id, error=str(e))
        error = IngestionError(path=shown, message=f"Unable to read {shown}: {e}")
        return IngestionResult(path=shown, errors=[error])
    return generate_file_embeddings(doc, project_id, **kwargs)


def process_file(doc: SourceDocument) -> tuple[dict[str, Any], list[str]]:
    """Return the document's front matter and its heading-delimited sections.

    Raises:
        UnparseableDocumentError: if the document cannot be normalized.
    """
    meta = extract_frontmatter(doc.content)
    tree = normalize_document(doc)
    return meta, split_sections(tree)


def generate_file_embeddings(
    doc: SourceDocument,
    project_id: str,
    *,
    provider: EmbeddingProvider,
    store: SectionStore,
    counter: UsageCounter,
    api_key: Optional[str] = None,
    settings: Optional[Settings] = None,
    policy: Optional[RetryPolicy] = None,
    cancel: Optional[threading.Event] = None,
    sleep: Optional[Callable[[float], object]] = None,
) -> IngestionResult:
    if settings is None:
        from ..core.config import SETTINGS as settings

    # Every event logged for this file, in any step, carries path and project_id
    with structlog.contextvars.bound_contextvars(path=doc.path, project_id=project_id):
        log.info("ingest.file_start", format=doc.declared_format.value)

        try:
            meta, sections = process_file(doc)
        except UnparseableDocumentError as e:
            log.error("ingest.unparseable", error=str(e))
            return IngestionResult(path=doc.path, errors=[IngestionError(path=doc.path, message=str(e))])

        coordinator = PersistenceCoordinator(store, counter)
        file_id = coordinator.resolve_file(project_id, doc.path, meta)
        if file_id is None:
            return IngestionResult(
                path=doc.path,
                errors=[IngestionError(path=doc.path, message=f"Unable to create file {doc.path}.")],
            )

        driver = EmbeddingDriver(
            provider,
            policy or RetryPolicy.from_settings(settings),
            budget=token_budget(settings.CONTEXT_TOKENS_CUTOFF),
            min_content_length=settings.MIN_CONTENT_LENGTH,
            sleep=sleep,
        )
        outcome = driver.embed_all(file_id, doc.path, sections, api_key=api_key, cancel=cancel)
        store_errors = coordinator.store_records(project_id, doc.path, outcome.records, outcome.total_tokens)

        result = IngestionResult(
            path=doc.path,
            file_id=file_id,
            sections=outcome.chunks,
            embedded=len(outcome.records),
            total_tokens=outcome.total_tokens,
            errors=outcome.errors + store_errors,
        )
        log.info(
            "ingest.file_done",
            file_id=file_id,
            sections=result.sections,
            embedded=result.embedded,
            errors=len(result.errors),
        )
        return result

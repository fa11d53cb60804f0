"""
Persistence coordinator.

Replaces a file's previously stored sections with freshly embedded ones and
records the tokens billed for them. Storage is best-effort past the file
record: a failed bulk insert degrades to row-by-row inserts, and the usage
counter is incremented whether or not every chunk was embedded or stored.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from ....core.logging import log
from ....core.models import EmbeddingRecord, IngestionError
from ....db.stores import (
    SectionStore,
    StoreError,
    UsageCounter,
    embeddings_month_token_count_key,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PersistenceCoordinator:
    def __init__(
        self,
        store: SectionStore,
        counter: UsageCounter,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.counter = counter
        self.clock = clock

    def resolve_file(self, project_id: str, path: str, meta: dict[str, Any]) -> Optional[int]:
        """Find or create the file record, clearing sections of an existing one.

        Returns None when the file cannot be resolved.
        """
        try:
            file_id = self.store.find_file_by_path(project_id, path)
            if file_id is not None:
                self.store.delete_sections(file_id)
                self.store.update_file_meta(file_id, meta)
            else:
                file_id = self.store.create_file(project_id, path, meta)
        except StoreError as e:
            log.error("persist.file_unresolved", project_id=project_id, path=path, error=str(e))
            return None
        return file_id

    def store_records(
        self,
        project_id: str,
        path: str,
        records: Sequence[EmbeddingRecord],
        total_tokens: int,
    ) -> list[IngestionError]:
        """Insert records (bulk, then one at a time) and count billed tokens."""
        errors: list[IngestionError] = []
        try:
            self.store.insert_sections(list(records))
        except StoreError as e:
            log.error("persist.bulk_insert_failed", path=path, records=len(records), error=str(e))
            errors.append(IngestionError(path=path, message=f"Error storing embeddings: {e}"))
            self._insert_one_by_one(path, records)

        self._increment_usage(project_id, path, total_tokens, errors)
        return errors

    def persist(
        self,
        project_id: str,
        path: str,
        meta: dict[str, Any],
        records: Sequence[EmbeddingRecord],
        total_tokens: int,
    ) -> list[IngestionError]:
        file_id = self.resolve_file(project_id, path, meta)
        if file_id is None:
            return [IngestionError(path=path, message=f"Unable to create file {path}.")]
        records = [record.model_copy(update={"file_id": file_id}) for record in records]
        return self.store_records(project_id, path, records, total_tokens)

    def _insert_one_by_one(self, path: str, records: Sequence[EmbeddingRecord]) -> None:
        stored = 0
        for record in records:
            try:
                self.store.insert_section(record)
                stored += 1
            except StoreError as e:
                log.warning("persist.single_insert_failed", path=path, error=str(e))
        log.info("persist.fallback_done", path=path, stored=stored, total=len(records))

    def _increment_usage(
        self,
        project_id: str,
        path: str,
        total_tokens: int,
        errors: list[IngestionError],
    ) -> None:
        key = embeddings_month_token_count_key(project_id, self.clock())
        try:
            self.counter.increment_by(key, total_tokens)
        except StoreError as e:
            log.error("persist.usage_increment_failed", key=key, amount=total_tokens, error=str(e))
            errors.append(IngestionError(path=path, message=f"Unable to record token usage: {e}"))
            return
        log.info("persist.usage_incremented", key=key, amount=total_tokens)

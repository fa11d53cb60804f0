"""
Store interfaces used by the persistence coordinator, with SQLAlchemy
implementations.

Every store failure surfaces as StoreError so callers can degrade (fall back
to row-by-row inserts, report an error) without depending on SQLAlchemy.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Optional, Protocol

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from ..core.models import EmbeddingRecord
from .engine import File, FileSection, UsageCount, get_session_factory


class StoreError(Exception):
    """A relational or counter store operation failed."""


class SectionStore(Protocol):
    def find_file_by_path(self, project_id: str, path: str) -> Optional[int]: ...

    def create_file(self, project_id: str, path: str, meta: dict[str, Any]) -> int: ...

    def update_file_meta(self, file_id: int, meta: dict[str, Any]) -> None: ...

    def delete_sections(self, file_id: int) -> None: ...

    def insert_sections(self, records: list[EmbeddingRecord]) -> None: ...

    def insert_section(self, record: EmbeddingRecord) -> None: ...


class UsageCounter(Protocol):
    def increment_by(self, key: str, amount: int) -> None: ...


def embeddings_month_token_count_key(project_id: str, when: datetime) -> str:
    """Counter key for a project's embedding tokens in the month of ``when``."""
    return f"{project_id}:month:{when:%Y-%m}:embeddings:token_count"


class _SqlStore:
    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory or get_session_factory()

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"{operation} failed: {e}") from e
        finally:
            session.close()


class SqlSectionStore(_SqlStore):
    """Files and file sections in a SQL database."""

    def find_file_by_path(self, project_id: str, path: str) -> Optional[int]:
        with self._transaction("find file") as session:
            return session.execute(
                select(File.id).where(File.project_id == project_id, File.path == path)
            ).scalar_one_or_none()

    def create_file(self, project_id: str, path: str, meta: dict[str, Any]) -> int:
        with self._transaction("create file") as session:
            file = File(project_id=project_id, path=path, meta=meta)
            session.add(file)
            session.flush()
            file_id = file.id
        return file_id

    def update_file_meta(self, file_id: int, meta: dict[str, Any]) -> None:
        with self._transaction("update file") as session:
            session.execute(update(File).where(File.id == file_id).values(meta=meta))

    def delete_sections(self, file_id: int) -> None:
        with self._transaction("delete sections") as session:
            session.execute(delete(FileSection).where(FileSection.file_id == file_id))

    def insert_sections(self, records: list[EmbeddingRecord]) -> None:
        if not records:
            return
        with self._transaction("insert sections") as session:
            session.execute(insert(FileSection), [record.to_row() for record in records])

    def insert_section(self, record: EmbeddingRecord) -> None:
        with self._transaction("insert section") as session:
            session.execute(insert(FileSection), [record.to_row()])

    def count_sections(self, file_id: int) -> int:
        with self._transaction("count sections") as session:
            return session.execute(
                select(func.count()).select_from(FileSection).where(FileSection.file_id == file_id)
            ).scalar_one()


class SqlUsageCounter(_SqlStore):
    """Atomic keyed counters: a single upsert adds to the stored value."""

    def increment_by(self, key: str, amount: int) -> None:
        with self._transaction("increment counter") as session:
            dialect = session.get_bind().dialect.name
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert as dialect_insert
            elif dialect == "sqlite":
                from sqlalchemy.dialects.sqlite import insert as dialect_insert
            else:
                raise StoreError(f"Counter increments are not supported on {dialect}")

            stmt = dialect_insert(UsageCount).values(key=key, value=amount)
            stmt = stmt.on_conflict_do_update(
                index_elements=[UsageCount.key],
                set_={"value": UsageCount.value + stmt.excluded.value, "updated_at": func.now()},
            )
            session.execute(stmt)

    def get(self, key: str) -> int:
        with self._transaction("read counter") as session:
            value = session.execute(select(UsageCount.value).where(UsageCount.key == key)).scalar_one_or_none()
        return value or 0

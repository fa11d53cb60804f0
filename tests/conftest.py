"""Global test configuration for markembed tests."""

from typing import Optional

import pytest

from markembed.core.models import EmbeddingRecord
from markembed.db.stores import StoreError
from markembed.pipeline.steps.embed.provider import EmbeddingProvider, EmbeddingResult


class FakeProvider(EmbeddingProvider):
    """Records calls; fails permanently on inputs containing a marker."""

    def __init__(self):
        self.calls: list[tuple[str, Optional[str]]] = []
        self.fail_on: tuple[str, ...] = ()
        self.transient_failures = 0

    def embed(self, text: str, api_key: Optional[str] = None) -> EmbeddingResult:
        self.calls.append((text, api_key))
        if any(marker in text for marker in self.fail_on):
            raise RuntimeError("provider rejected input")
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise RuntimeError("429 too many requests")
        return EmbeddingResult(embedding=[float(len(text)), 0.5, 1.0], total_tokens=len(text) // 4)

    @property
    def dimension(self) -> int:
        return 3

    @property
    def provider_name(self) -> str:
        return "fake"


class FakeSectionStore:
    """In-memory SectionStore with switchable failures."""

    def __init__(self):
        self.files: dict[tuple[str, str], int] = {}
        self.meta: dict[int, dict] = {}
        self.sections: list[EmbeddingRecord] = []
        self.calls: list[str] = []
        self.fail_find = False
        self.fail_create = False
        self.fail_bulk = False
        self.fail_single_on: tuple[str, ...] = ()

    def find_file_by_path(self, project_id, path):
        self.calls.append("find")
        if self.fail_find:
            raise StoreError("connection refused")
        return self.files.get((project_id, path))

    def create_file(self, project_id, path, meta):
        self.calls.append("create")
        if self.fail_create:
            raise StoreError("insert into files failed")
        file_id = len(self.files) + 1
        self.files[(project_id, path)] = file_id
        self.meta[file_id] = meta
        return file_id

    def update_file_meta(self, file_id, meta):
        self.calls.append("update")
        self.meta[file_id] = meta

    def delete_sections(self, file_id):
        self.calls.append("delete")
        self.sections = [s for s in self.sections if s.file_id != file_id]

    def insert_sections(self, records):
        self.calls.append("bulk")
        if self.fail_bulk:
            raise StoreError("payload too large")
        self.sections.extend(records)

    def insert_section(self, record):
        self.calls.append("single")
        if any(marker in record.content for marker in self.fail_single_on):
            raise StoreError("row rejected")
        self.sections.append(record)


class FakeCounter:
    def __init__(self):
        self.values: dict[str, int] = {}
        self.fail = False

    def increment_by(self, key, amount):
        if self.fail:
            raise StoreError("counter unavailable")
        self.values[key] = self.values.get(key, 0) + amount


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def fake_store():
    return FakeSectionStore()


@pytest.fixture
def fake_counter():
    return FakeCounter()


@pytest.fixture
def no_sleep():
    """Sleep function that records requested delays instead of sleeping."""
    delays: list[float] = []

    def sleep(seconds):
        delays.append(seconds)

    sleep.delays = delays  # type: ignore[attr-defined]
    return sleep


@pytest.fixture
def sqlite_session_factory():
    """Fresh in-memory SQLite schema per test."""
    from sqlalchemy.orm import sessionmaker

    from markembed.db.engine import Base, make_engine

    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    Base.metadata.drop_all(engine)
    engine.dispose()

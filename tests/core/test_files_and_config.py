"""Tests for file classification, front matter and settings."""

import pytest

from markembed.core.config import Settings
from markembed.core.files import extract_frontmatter, get_file_type
from markembed.core.models import DocumentFormat
from markembed.pipeline.steps.chunk.budget import token_budget


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("guide.mdoc", DocumentFormat.MARKDOC),
        ("page.html", DocumentFormat.HTML),
        ("PAGE.HTM", DocumentFormat.HTML),
        ("intro.mdx", DocumentFormat.MDX),
        ("readme.md", DocumentFormat.MDX),
        ("no_extension", DocumentFormat.MDX),
    ],
)
def test_get_file_type(filename, expected):
    assert get_file_type(filename) is expected


def test_extract_frontmatter():
    assert extract_frontmatter("---\ntitle: T\ntags: [a, b]\n---\n\nbody\n") == {"title": "T", "tags": ["a", "b"]}


def test_extract_frontmatter_missing():
    assert extract_frontmatter("# No front matter\n") == {}


def test_extract_frontmatter_malformed():
    assert extract_frontmatter("---\ntitle: [unclosed\n---\n\nbody\n") == {}


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("CONTEXT_TOKENS_CUTOFF", "MIN_CONTENT_LENGTH", "EMBED_RETRY_ATTEMPTS"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.CONTEXT_TOKENS_CUTOFF == 5000
        assert token_budget(settings.CONTEXT_TOKENS_CUTOFF) == 4000
        assert settings.LOG_LEVEL == "info"
        assert not hasattr(settings, "MARKEMBED_TESTING")
        assert settings.MIN_CONTENT_LENGTH == 20
        assert settings.EMBED_RETRY_ATTEMPTS == 10

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CONTEXT_TOKENS_CUTOFF", "1000")
        assert token_budget(Settings(_env_file=None).CONTEXT_TOKENS_CUTOFF) == 800

    def test_load_yaml_config(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("EMBED_PROVIDER: dummy\nMIN_CONTENT_LENGTH: 3\n")
        settings = Settings.load_config(str(path))
        assert settings.EMBED_PROVIDER == "dummy"
        assert settings.MIN_CONTENT_LENGTH == 3

    def test_load_toml_config(self, tmp_path):
        path = tmp_path / "cfg.toml"
        path.write_text('EMBED_MODEL = "text-embedding-3-large"\n')
        assert Settings.load_config(str(path)).EMBED_MODEL == "text-embedding-3-large"

from __future__ import annotations

import os

import pytest

from intervox.models.schemas import SourceType
from intervox.services.prompt_store import PromptCatalog, has_prompt, render_prompt


def test_render_prompt_substitutes_template_values():
    prompt = render_prompt("identity", "search_prompt", query="Ada Lovelace mathematician")
    assert 'Search for "Ada Lovelace mathematician"' in prompt


def test_every_scrapable_source_has_a_prompt():
    for source in SourceType:
        if source is SourceType.OTHER:
            assert not has_prompt("scraper", "sources", source.value)
        else:
            prompt = render_prompt("scraper", "sources", source.value, name="Ada", context_clause="")
            assert "Ada" in prompt


def test_render_prompt_raises_for_unknown_key():
    with pytest.raises(KeyError):
        render_prompt("missing", "prompt", "key")


def test_render_prompt_reports_missing_value():
    with pytest.raises(KeyError, match="query"):
        render_prompt("identity", "search_prompt")


def test_render_prompt_rejects_non_string_entries():
    with pytest.raises(TypeError):
        render_prompt("scraper", "sources")


def test_catalog_reloads_after_the_file_changes(tmp_path):
    path = tmp_path / "prompts.json"
    path.write_text('{"greeting": "Hello $name"}', encoding="utf-8")
    catalog = PromptCatalog(path)
    assert catalog.render("greeting", name="Ada") == "Hello Ada"

    path.write_text('{"greeting": "Goodbye $name"}', encoding="utf-8")
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000))

    assert catalog.render("greeting", name="Ada") == "Goodbye Ada"
    assert not catalog.has("farewell")


def test_catalog_must_be_an_object(tmp_path):
    path = tmp_path / "prompts.json"
    path.write_text('["not", "an", "object"]', encoding="utf-8")
    with pytest.raises(ValueError):
        PromptCatalog(path).tree()

"""Tests for tagging prompts and the tool schema."""

from src.tagging.prompts import (
    SET_TAGS_TOOL,
    SET_TAGS_TOOL_NAME,
    build_system_prompt,
    build_user_prompt,
)
from src.tagging.taxonomy import ALL_TAGS, MAX_TAGS


def test_system_prompt_lists_every_dimension():
    prompt = build_system_prompt()

    assert "反转" in prompt
    assert "职场" in prompt
    assert "字符画" in prompt
    assert SET_TAGS_TOOL_NAME in prompt


def test_user_prompt_truncates_title_and_body():
    prompt = build_user_prompt("标题", "正" * 500, max_chars=100)

    content = prompt.split("---\n")[1].rstrip("\n")
    assert len(content) == 100
    assert content.startswith("标题\n\n正")


def test_tool_schema_is_constrained_to_taxonomy():
    tags = SET_TAGS_TOOL["function"]["parameters"]["properties"]["tags"]

    assert tags["items"]["enum"] == list(ALL_TAGS)
    assert tags["maxItems"] == MAX_TAGS
    assert SET_TAGS_TOOL["function"]["parameters"]["required"] == ["tags"]

"""Tests for tag validation against the taxonomy."""

import pytest

from src.tagging.taxonomy import ALL_TAGS, FALLBACK_TAG
from src.tagging.validation import TagStatus, validate_tags


class TestValidateTags:
    def test_known_tags_pass_through(self):
        result = validate_tags(["反转", "职场"])

        assert result.status is TagStatus.VALID
        assert result.tags == ("反转", "职场")
        assert result.dropped == ()

    def test_unknown_tags_dropped(self):
        result = validate_tags(["反转", "不存在的标签", 7])

        assert result.tags == ("反转",)
        assert result.dropped == ("不存在的标签", "7")

    def test_whitespace_and_duplicates(self):
        result = validate_tags([" 反转 ", "反转", "职场"])

        assert result.tags == ("反转", "职场")

    def test_truncated_to_three(self):
        result = validate_tags(["反转", "职场", "对话", "温情"])

        assert result.tags == ("反转", "职场", "对话")

    @pytest.mark.parametrize("raw", [[], ["完全未知"], [None, 1]])
    def test_nothing_known_falls_back(self, raw):
        result = validate_tags(raw)

        assert result.status is TagStatus.FALLBACK
        assert result.tags == (FALLBACK_TAG,)
        assert result.usable

    @pytest.mark.parametrize("raw", [None, "反转", {"tags": ["反转"]}, 3])
    def test_non_array_is_invalid(self, raw):
        result = validate_tags(raw)

        assert result.status is TagStatus.INVALID
        assert result.tags == ()
        assert not result.usable

    def test_results_are_always_closed_over_taxonomy(self):
        result = validate_tags(list(ALL_TAGS[:2]) + ["x", "y"])

        assert all(tag in ALL_TAGS or tag == FALLBACK_TAG for tag in result.tags)

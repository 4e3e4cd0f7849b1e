"""Tests for issue normalization."""

from src.ingestion.schemas import ContentType, ModerationStatus
from src.sync.config import DEFAULT_TYPE_LABELS, TypeLabels
from src.sync.normalizer import detect_content_type, normalize_issue


class TestDetectContentType:
    def test_meme_label_wins_over_text_body(self):
        assert detect_content_type("纯文字", ["梗图"], DEFAULT_TYPE_LABELS) is ContentType.MEME

    def test_text_label_wins_over_image(self):
        body = "![a](https://img.example/1.png)"

        assert detect_content_type(body, ["文案"], DEFAULT_TYPE_LABELS) is ContentType.TEXT

    def test_meme_checked_before_text(self):
        labels = TypeLabels(meme=["m"], text=["t"])

        assert detect_content_type("", ["t", "m"], labels) is ContentType.MEME

    def test_falls_back_to_image_syntax(self):
        assert detect_content_type("![a](x.png)", ["收录"]) is ContentType.MEME
        assert detect_content_type("plain", ["收录"]) is ContentType.TEXT


class TestNormalizeIssue:
    def test_fields(self, sample_issue):
        item = normalize_issue(sample_issue, "vme-im/vme-content")

        assert item.id == sample_issue.id
        assert item.url == sample_issue.html_url
        assert item.author_username == "alice"
        assert item.source_repo == "vme-im/vme-content"
        assert item.content_type is ContentType.TEXT
        assert item.moderation_status is ModerationStatus.APPROVED
        assert item.tags == []
        assert item.reactions_count == 0

    def test_meme_body(self, meme_issue):
        item = normalize_issue(meme_issue, "vme-im/vme-content", DEFAULT_TYPE_LABELS)

        assert item.content_type is ContentType.MEME

    def test_overrides(self, meme_issue):
        item = normalize_issue(
            meme_issue,
            "vme-im/vme-content",
            content_type=ContentType.TEXT,
            tags=[" 反转", "反转", "职场", "对话", "温情"],
        )

        assert item.content_type is ContentType.TEXT
        assert item.tags == ["反转", "职场", "对话"]

    def test_missing_author(self, sample_issue):
        sample_issue.author = None

        assert normalize_issue(sample_issue, "o/r").author_username == "unknown"

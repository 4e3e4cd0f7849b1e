"""Upstream issue -> Item normalization."""

from src.ingestion.markdown import has_image_syntax
from src.ingestion.schemas import ContentType, IssuePayload, Item, ModerationStatus
from src.sync.config import TypeLabels
from src.tagging.taxonomy import MAX_TAGS


def detect_content_type(
    body: str,
    labels: list[str],
    type_labels: TypeLabels | None = None,
) -> ContentType:
    """
    Derive the content type of an issue.

    Configured type labels win (meme before text); otherwise an embedded
    markdown image makes it a meme.
    """
    if type_labels is not None:
        if any(label in labels for label in type_labels.meme):
            return ContentType.MEME
        if any(label in labels for label in type_labels.text):
            return ContentType.TEXT
    return ContentType.MEME if has_image_syntax(body) else ContentType.TEXT


def _clean_tags(tags: list[str] | None) -> list[str]:
    cleaned: list[str] = []
    for tag in tags or []:
        tag = tag.strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned[:MAX_TAGS]


def normalize_issue(
    issue: IssuePayload,
    source_repo: str,
    type_labels: TypeLabels | None = None,
    content_type: ContentType | None = None,
    tags: list[str] | None = None,
) -> Item:
    """
    Build the row for an accepted issue.

    Items arriving through sync are already moderated upstream, so they
    are always written as approved.
    """
    return Item(
        id=issue.id,
        title=issue.title,
        url=issue.html_url,
        body=issue.body,
        created_at=issue.created_at,
        updated_at=issue.updated_at,
        author_username=issue.author_username,
        source_repo=source_repo,
        content_type=content_type or detect_content_type(issue.body, issue.labels, type_labels),
        moderation_status=ModerationStatus.APPROVED,
        tags=_clean_tags(tags),
    )

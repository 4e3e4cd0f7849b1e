"""Moderation outcomes, classifier verdicts and tracker-facing text."""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

# Labels written back to the tracker; an issue carrying any of them has
# already been through moderation.
LABEL_DUPLICATE = "重复"
LABEL_VIOLATION = "违规"
LABEL_APPROVED = "收录"
LABEL_PENDING = "待审"
MODERATION_LABELS = frozenset({LABEL_DUPLICATE, LABEL_VIOLATION, LABEL_APPROVED, LABEL_PENDING})

# Classifier category code -> reviewer-facing label. Codes missing here
# are not shown to the submitter.
CATEGORY_LABELS: dict[str, str] = {
    "hate": "仇恨",
    "hate/threatening": "仇恨/威胁",
    "harassment": "骚扰",
    "harassment/threatening": "骚扰/威胁",
    "sexual": "色情",
    "sexual/minors": "未成年人色情",
    "violence": "暴力",
    "violence/graphic": "暴力/血腥",
    "self-harm": "自残",
    "self-harm/intent": "自残意图",
    "self-harm/instructions": "自残指导",
    "illicit": "非法",
    "illicit/violent": "非法/暴力",
}

COMMENT_SIMILAR = "🔍查找到相似文案：{url}"
COMMENT_EMPTY = "⚠️内容为空，需要人工审核确认。"
COMMENT_FLAGGED_UNMAPPED = "⚠️内容可能违规，正等待进一步人工审核确认。"
COMMENT_VIOLATION = "⛔️此内容因包含以下违规类别被标记：{categories}。不予收录。"
COMMENT_APPROVED = "🤝您的内容已成功收录，感谢您的贡献！"
COMMENT_UNAVAILABLE = "⚠️自动审核暂时不可用，内容已提交人工审核。"


def has_moderation_label(labels: list[str]) -> bool:
    return any(label in MODERATION_LABELS for label in labels)


class OutcomeType(str, Enum):
    SIMILAR = "similar"
    VIOLATION = "violation"
    APPROVED = "approved"
    PENDING = "pending"
    SKIPPED = "skipped"


class ModerationOutcome(BaseModel):
    """Result of one moderation pass, returned to the webhook caller."""

    type: OutcomeType
    message: str | None = None
    categories: list[str] | None = Field(
        default=None, description="Reviewer-facing labels of flagged categories"
    )

    @property
    def is_terminal(self) -> bool:
        """Similar, violation and approved close the issue."""
        return self.type in (OutcomeType.SIMILAR, OutcomeType.VIOLATION, OutcomeType.APPROVED)


@dataclass
class ClassifierVerdict:
    """Flags merged (logical OR) across every input entry."""

    flagged: bool
    categories: set[str] = field(default_factory=set)

    def mapped_categories(self) -> list[str]:
        """Reviewer-facing labels, in dictionary order, for mapped codes only."""
        return [label for code, label in CATEGORY_LABELS.items() if code in self.categories]


@dataclass
class IssueActions:
    """Side effects to apply to the upstream issue."""

    labels: list[str] = field(default_factory=list)
    comment: str | None = None
    close: bool = False


@dataclass
class ModerationDecision:
    """An outcome plus the tracker writes it implies."""

    outcome: ModerationOutcome
    actions: IssueActions

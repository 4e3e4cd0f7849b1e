"""
Duplicate detection for new submissions.

Compares a submission against the similarity corpus using three
criteria, in this order per corpus entry:
- Literal image URL reuse
- Perceptual hash (aHash) of embedded images, Hamming distance < 10
- Edit distance of the separator-stripped text, ratio < 0.2

The first corpus entry satisfying any criterion is returned. Scanning is
in corpus order, so the result is the first match, not the best one.
"""

import logging
import re
from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

from src.ingestion.corpus import CorpusEntry, SimilarityCorpus
from src.ingestion.image_hash import ImageHasher, is_image_similar
from src.ingestion.markdown import extract_image_urls, extract_text
from src.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

# Half-width, full-width and CJK punctuation plus bracket/symbol characters
_SEPARATOR_PATTERN = re.compile(
    "["
    " ,!@#.;:"
    "　，。；："
    "、“”‘’（）【】《》！？\u2014～"
    r"\^&*()_+=\-\[\]{}|<>?`~"
    "]"
)


def remove_separators(text: str) -> str:
    """Drop punctuation and symbol characters that should not affect similarity."""
    return _SEPARATOR_PATTERN.sub("", text)


def is_text_similar(text_a: str, text_b: str, threshold: float = 0.2) -> bool:
    """
    Edit-distance similarity of two plain-text bodies.

    The distance is computed on separator-stripped text and divided by
    the longer of the two original lengths, so bodies that differ only in
    punctuation count as similar. Two empty bodies are never similar.
    """
    stripped_a = remove_separators(text_a)
    stripped_b = remove_separators(text_b)
    max_length = max(len(text_a), len(text_b))
    if max_length == 0:
        return False
    distance = Levenshtein.distance(stripped_a, stripped_b)
    return distance / max_length < threshold


@dataclass
class DuplicateMatch:
    """A corpus entry that matched, and which criterion matched it."""

    entry: CorpusEntry
    criterion: str  # image_url, image_hash, text

    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def url(self) -> str:
        return self.entry.url


class DuplicateDetector:
    """
    Finds an existing accepted item similar to a new submission.

    Image hashing failures are non-fatal: an image that cannot be
    fetched is excluded from comparison. An unreachable corpus yields
    no match.
    """

    def __init__(
        self,
        corpus: SimilarityCorpus,
        hasher: ImageHasher | None = None,
        image_hash_threshold: int = 10,
        text_similarity_threshold: float = 0.2,
    ) -> None:
        self._corpus = corpus
        self._hasher = hasher or ImageHasher()
        self._image_threshold = image_hash_threshold
        self._text_threshold = text_similarity_threshold

    async def find_similar(
        self, body: str, exclude_id: str | None = None
    ) -> DuplicateMatch | None:
        """
        Return the first corpus entry similar to `body`, or None.

        Args:
            body: Markdown body of the submission
            exclude_id: Item id to skip (the submission itself on re-runs)
        """
        entries = await self._corpus.entries()
        if not entries:
            return None

        image_urls = extract_image_urls(body)
        text = extract_text(body)
        image_hashes = await self._hasher.hash_urls(image_urls) if image_urls else []

        for entry in entries:
            if exclude_id and entry.id == exclude_id:
                continue
            criterion = self._match(entry, text, image_urls, image_hashes)
            if criterion is not None:
                logger.info(f"Submission matches corpus item {entry.id} by {criterion}")
                get_metrics().record_duplicate(criterion)
                return DuplicateMatch(entry=entry, criterion=criterion)

        return None

    def _match(
        self,
        entry: CorpusEntry,
        text: str,
        image_urls: list[str],
        image_hashes: list[str],
    ) -> str | None:
        if image_urls and entry.image_urls:
            if any(url in entry.image_urls for url in image_urls):
                return "image_url"

        if image_hashes and entry.image_hashes:
            for new_hash in image_hashes:
                for existing_hash in entry.image_hashes:
                    try:
                        if is_image_similar(new_hash, existing_hash, self._image_threshold):
                            return "image_hash"
                    except ValueError:
                        logger.debug(f"Skipping malformed hash on corpus item {entry.id}")

        if text and entry.text and is_text_similar(entry.text, text, self._text_threshold):
            return "text"

        return None

"""
Perceptual image hashing (aHash) for meme duplicate detection.

The image is downsampled to 8x8 grayscale and each pixel is compared
against the block mean, producing a 64-bit fingerprint encoded as 16
hex characters. Re-encoded or lightly recompressed copies of the same
image land within a few bits of each other; unrelated images differ in
roughly half the bits.
"""

import io
import logging

import httpx
import numpy as np
from PIL import Image

from src.ingestion.http_client import HTTPClient, HTTPClientError, RetryConfig

logger = logging.getLogger(__name__)

HASH_SIZE = 8
HASH_BITS = HASH_SIZE * HASH_SIZE

# Larger images are rejected before decoding
MAX_SOURCE_PIXELS = 40_000_000


def average_hash(image_bytes: bytes) -> str:
    """
    Compute the aHash of an encoded image.

    Raises:
        PIL.UnidentifiedImageError: bytes are not a decodable image
        PIL.Image.DecompressionBombError: declared size is far beyond Pillow's limit
        ValueError: declared size exceeds MAX_SOURCE_PIXELS
    """
    with Image.open(io.BytesIO(image_bytes)) as img:
        if img.width * img.height > MAX_SOURCE_PIXELS:
            raise ValueError(f"Image too large to hash: {img.width}x{img.height}")
        img.draft("L", (HASH_SIZE * 8, HASH_SIZE * 8))
        small = img.convert("L").resize((HASH_SIZE, HASH_SIZE), Image.Resampling.LANCZOS)
        pixels = np.asarray(small, dtype=np.float64).flatten()

    bits = pixels > pixels.mean()
    value = 0
    for bit in bits:
        value = (value << 1) | int(bit)
    return f"{value:0{HASH_BITS // 4}x}"


def hamming_distance(hash_a: str, hash_b: str) -> int:
    """
    Count differing bits between two hex fingerprints.

    Raises:
        ValueError: either hash is not valid hex
    """
    return bin(int(hash_a, 16) ^ int(hash_b, 16)).count("1")


def is_image_similar(hash_a: str, hash_b: str, threshold: int = 10) -> bool:
    """Hamming distance strictly below threshold counts as the same image."""
    return hamming_distance(hash_a, hash_b) < threshold


class ImageHasher:
    """
    Downloads images and fingerprints them.

    Failures are non-fatal: an image that cannot be fetched or decoded
    is dropped from the result rather than raising.
    """

    def __init__(self, timeout: float = 10.0, retry_config: RetryConfig | None = None):
        self._timeout = timeout
        self._retry_config = retry_config or RetryConfig(max_retries=0)

    async def hash_urls(self, urls: list[str]) -> list[str]:
        """Fingerprint each URL in order, skipping any that fail."""
        if not urls:
            return []

        hashes: list[str] = []
        async with HTTPClient(self._retry_config, timeout=self._timeout) as client:
            for url in urls:
                image_hash = await self._hash_one(client, url)
                if image_hash is not None:
                    hashes.append(image_hash)
        return hashes

    async def _hash_one(self, client: HTTPClient, url: str) -> str | None:
        try:
            response = await client.get(url)
            return average_hash(response.content)
        except (HTTPClientError, httpx.HTTPError) as e:
            logger.warning(f"Image fetch failed for {url}: {e}")
        except (Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            logger.warning(f"Image decode failed for {url}: {e}")
        return None

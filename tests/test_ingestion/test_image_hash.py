"""Tests for perceptual image hashing."""

import io

import httpx
import pytest
import respx
from PIL import Image

from src.ingestion.image_hash import (
    MAX_SOURCE_PIXELS,
    ImageHasher,
    average_hash,
    hamming_distance,
    is_image_similar,
)
from tests.conftest import png_bytes, png_with_declared_size


def reencode_jpeg(data: bytes, quality: int) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


class TestAverageHash:
    def test_hash_is_sixteen_hex_chars(self):
        result = average_hash(png_bytes("checker"))

        assert len(result) == 16
        int(result, 16)

    def test_horizontal_gradient(self):
        """Left half darker than the mean, right half brighter."""
        assert average_hash(png_bytes("gradient")) == "0f0f0f0f0f0f0f0f"

    def test_flat_image_has_no_bits_set(self):
        assert average_hash(png_bytes("flat")) == "0000000000000000"

    def test_same_image_at_different_size_matches(self):
        small = average_hash(png_bytes("gradient", size=32))
        large = average_hash(png_bytes("gradient", size=128))

        assert is_image_similar(small, large)

    def test_different_images_do_not_match(self):
        assert not is_image_similar(
            average_hash(png_bytes("gradient")), average_hash(png_bytes("checker"))
        )

    def test_undecodable_bytes_raise(self):
        with pytest.raises(OSError):
            average_hash(b"not an image")

    @pytest.mark.parametrize("pattern", ["gradient", "checker"])
    def test_lossy_jpeg_reencode_matches(self, pattern):
        original = png_bytes(pattern)
        reencoded = reencode_jpeg(original, quality=30)

        assert reencoded != original
        assert hamming_distance(average_hash(original), average_hash(reencoded)) < 10

    def test_declared_size_over_cap_raises(self):
        data = png_with_declared_size(8000, 6000)
        assert 8000 * 6000 > MAX_SOURCE_PIXELS

        with pytest.raises(ValueError, match="too large"):
            average_hash(data)

    def test_decompression_bomb_raises(self):
        with pytest.raises(Image.DecompressionBombError):
            average_hash(png_with_declared_size(20000, 10000))


class TestHammingDistance:
    def test_distance(self):
        assert hamming_distance("0000000000000000", "0000000000000000") == 0
        assert hamming_distance("0000000000000000", "000000000000000f") == 4
        assert hamming_distance("ffffffffffffffff", "0000000000000000") == 64

    def test_threshold_is_strict(self):
        nine_bits = "00000000000001ff"
        ten_bits = "00000000000003ff"

        assert is_image_similar("0000000000000000", nine_bits, threshold=10)
        assert not is_image_similar("0000000000000000", ten_bits, threshold=10)

    def test_invalid_hex(self):
        with pytest.raises(ValueError):
            hamming_distance("zz", "00")


class TestImageHasher:
    @respx.mock
    async def test_hash_urls_skips_failures(self):
        respx.get("https://img.example/ok.png").mock(
            return_value=httpx.Response(200, content=png_bytes("gradient"))
        )
        respx.get("https://img.example/missing.png").mock(return_value=httpx.Response(404))
        respx.get("https://img.example/garbage.png").mock(
            return_value=httpx.Response(200, content=b"<html>")
        )

        hashes = await ImageHasher().hash_urls([
            "https://img.example/missing.png",
            "https://img.example/ok.png",
            "https://img.example/garbage.png",
        ])

        assert hashes == ["0f0f0f0f0f0f0f0f"]

    @respx.mock
    async def test_transport_error_is_not_fatal(self):
        respx.get("https://img.example/slow.png").mock(side_effect=httpx.ReadTimeout("slow"))

        assert await ImageHasher().hash_urls(["https://img.example/slow.png"]) == []

    @respx.mock
    async def test_oversized_images_are_skipped(self):
        respx.get("https://img.example/bomb.png").mock(
            return_value=httpx.Response(200, content=png_with_declared_size(20000, 10000))
        )
        respx.get("https://img.example/huge.png").mock(
            return_value=httpx.Response(200, content=png_with_declared_size(8000, 6000))
        )
        respx.get("https://img.example/ok.png").mock(
            return_value=httpx.Response(200, content=png_bytes("gradient"))
        )

        hashes = await ImageHasher().hash_urls([
            "https://img.example/bomb.png",
            "https://img.example/huge.png",
            "https://img.example/ok.png",
        ])

        assert hashes == ["0f0f0f0f0f0f0f0f"]

    async def test_no_urls(self):
        assert await ImageHasher().hash_urls([]) == []

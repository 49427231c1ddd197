"""Shared fixtures for mediadrop tests."""
import io

import pytest
from PIL import Image

from mediadrop.models import CandidateFile


def make_jpeg(width: int = 320, height: int = 200) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 40, 40)).save(buffer, "JPEG")
    return buffer.getvalue()


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()


@pytest.fixture
def image_candidate(jpeg_bytes):
    return CandidateFile.from_bytes("photo.jpg", jpeg_bytes, "image/jpeg")


@pytest.fixture
def video_candidate():
    return CandidateFile.from_bytes("clip.mp4", b"\x00" * 4096, "video/mp4")

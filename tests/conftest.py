"""
Shared fixtures for the YardScape test suite.
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from core.settings import settings


SAMPLE_ANALYSIS = {
    "spaceType": "backyard",
    "size": "medium",
    "existingFeatures": ["lawn"],
    "lighting": "full sun",
    "soilType": "loam",
    "climate": "temperate",
    "challenges": [],
    "opportunities": ["ample space"],
    "recommendations": [],
}

# Smallest valid JPEG header is enough: nothing decodes the upload bytes
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 2048 + b"\xff\xd9"


@pytest.fixture
def configured_settings(monkeypatch):
    """Credentials for every external service."""
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "test-key")
    monkeypatch.setattr(settings, "API_BASE_URL", "https://api.test")
    monkeypatch.setattr(settings, "CLOUDINARY_CLOUD_NAME", "demo-cloud")
    monkeypatch.setattr(settings, "CLOUDINARY_UPLOAD_PRESET", "yard-preset")
    monkeypatch.setattr(settings, "CLOUDINARY_API_KEY", None)
    monkeypatch.setattr(settings, "CLOUDINARY_API_SECRET", None)
    return settings


@pytest.fixture
def unconfigured_settings(monkeypatch):
    """No credentials at all."""
    for name in (
        "OPENAI_API_KEY",
        "CLOUDINARY_CLOUD_NAME",
        "CLOUDINARY_UPLOAD_PRESET",
        "CLOUDINARY_API_KEY",
        "CLOUDINARY_API_SECRET",
    ):
        monkeypatch.setattr(settings, name, None)
    return settings


@pytest.fixture
def yard_photo(tmp_path) -> Path:
    photo = tmp_path / "x.jpg"
    photo.write_bytes(JPEG_BYTES)
    return photo


@pytest.fixture
def sample_analysis_data() -> dict:
    return dict(SAMPLE_ANALYSIS)

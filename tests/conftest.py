# tests/conftest.py

from datetime import datetime, timedelta, timezone

import cv2
import numpy as np
import pytest

from picture_pruner.config import SystemConfig
from picture_pruner.core.models import Photo

BASE_TIME = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def ramp_image():
    """
    9x8 block image, even rows brighten left to right, odd rows darken

    Its difference hash is 00ff00ff00ff00ff at any integer scale.
    """
    def _make(scale):
        ramp = np.arange(9, dtype=np.int32) * 25 + 20
        grid = np.stack([ramp if r % 2 == 0 else ramp[::-1] for r in range(8)])
        return np.kron(grid, np.ones((scale, scale), dtype=np.int32)).astype(np.uint8)
    return _make


@pytest.fixture
def write_image(tmp_path):
    """Write a numpy array as an image file under tmp_path"""
    def _write(name, array):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        assert cv2.imwrite(str(path), array)
        return path
    return _write


@pytest.fixture
def make_photo():
    """Factory for in-memory Photo records"""
    def _make(name, fingerprint=None, content_hash=None, seconds=None,
              width=4000, height=3000, size=2_000_000, collection_id="c1"):
        return Photo(
            id=f"id-{name}",
            collection_id=collection_id,
            file_name=name,
            source_path=f"/photos/{name}",
            file_size_bytes=size,
            mime_type="image/jpeg",
            imported_at=BASE_TIME,
            width=width,
            height=height,
            taken_at=BASE_TIME + timedelta(seconds=seconds) if seconds is not None else None,
            content_hash=content_hash,
            perceptual_fingerprint=fingerprint,
        )
    return _make


@pytest.fixture
def quiet_config():
    """Default configuration without progress bars"""
    config = SystemConfig()
    config.show_progress = False
    return config

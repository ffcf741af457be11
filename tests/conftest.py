"""
Pytest configuration and fixtures.

Provides:
- Sample video records and a temporary data file seeded with them
- A FastAPI app bound to that file, and a TestClient for it
"""

import json
from pathlib import Path
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient

from schemas import Video


SAMPLE_VIDEOS = [
    {
        "id": "v-001",
        "title": "Intro Tutorial",
        "thumbnail_url": "https://picsum.photos/seed/v-001/300/200",
        "created_at": "2025-01-10T09:00:00.000Z",
        "duration": 120,
        "views": 10,
        "tags": ["beginner", "Tutorial"],
    },
    {
        "id": "v-002",
        "title": "Advanced Guide",
        "thumbnail_url": "https://picsum.photos/seed/v-002/300/200",
        "created_at": "2025-03-01T12:30:00.000Z",
        "duration": 600,
        "views": 500,
        "tags": ["advanced"],
    },
    {
        "id": "v-003",
        "title": "color grading basics",
        "thumbnail_url": "https://picsum.photos/seed/v-003/300/200",
        "created_at": "2025-02-14T18:45:00.000Z",
        "duration": 300,
        "views": 500,
        "tags": ["smart-color", " tutorial "],
    },
]


@pytest.fixture
def sample_records() -> List[dict]:
    return json.loads(json.dumps(SAMPLE_VIDEOS))


@pytest.fixture
def sample_videos(sample_records) -> List[Video]:
    return [Video.model_validate(r) for r in sample_records]


@pytest.fixture
def data_file(tmp_path: Path, sample_records) -> Path:
    path = tmp_path / "videos.json"
    path.write_text(json.dumps({"videos": sample_records}, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def test_config(data_file: Path) -> dict:
    return {
        "data_path": str(data_file),
        "frontend_url": "http://localhost:3000",
        "host": "127.0.0.1",
        "port": 3001,
        "app_env": "test",
        "log_level": "WARNING",
        "log_json": False,
        "default_video_duration": 300,
        "thumbnail_base_url": "https://picsum.photos/seed",
    }


@pytest.fixture
def app(test_config):
    from main import create_app

    return create_app(test_config)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

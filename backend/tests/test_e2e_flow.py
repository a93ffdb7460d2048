"""End-to-end tests for the tiger tracking workflow.

This module verifies the integrated flow of:
- Registering tigers,
- Recording a chain of sightings that moves a tiger step by step,
- Rejecting a sighting too far from the last accepted one, and
- Reading both lists back through the cache.

The production factories are monkeypatched to return the in-memory
repository and cache client, so the app is wired exactly as in production
through get_service without a database or Redis.

See Also:
- backend/tigerhall/services/sighting.py for the business rules.
- backend/tigerhall/api/tigers.py for the endpoints.
"""

from __future__ import annotations

import base64
import io
from typing import TYPE_CHECKING

from fastapi import testclient
from PIL import Image

from tigerhall import main
from tigerhall.api import tigers as api_tigers
from tigerhall.core import config
from tigerhall.db import cache, database

if TYPE_CHECKING:
    import pytest


def _jpeg_data_uri(size: tuple[int, int]) -> str:
    buf = io.BytesIO()
    Image.new("RGB", size, color=(240, 130, 10)).save(buf, format="JPEG")
    return "data:image/jpeg;base64," + base64.b64encode(buf.getvalue()).decode()


def test_full_flow(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test creating tigers, tracking one across sightings, and reading back."""
    repo = database.InMemorySightingRepository()
    cache_client = cache.InMemoryCacheClient()

    def _get_sighting_repository(
        _settings: config.Settings,
    ) -> database.InMemorySightingRepository:
        return repo

    def _get_cache_repository(_settings: config.Settings) -> cache.CacheRepository:
        return cache.CacheRepository(cache_client)

    monkeypatch.setattr(database, "get_sighting_repository", _get_sighting_repository)
    monkeypatch.setattr(cache, "get_cache_repository", _get_cache_repository)
    api_tigers.get_service.cache_clear()

    app = main.create_app()
    try:
        with testclient.TestClient(app) as client:
            for name, timestamp in (
                ("Raja", "2024-01-01T08:00:00Z"),
                ("Sita", "2024-01-01T09:00:00Z"),
            ):
                created = client.post(
                    "/v1/tigers",
                    json={
                        "name": name,
                        "date_of_birth": "2019-05-01T00:00:00Z",
                        "last_seen_timestamp": timestamp,
                        "last_seen_latitude": -6.18,
                        "last_seen_longitude": 108.0,
                    },
                )
                assert created.status_code == 201

            assert [t["name"] for t in client.get("/v1/tigers").json()["data"]] == [
                "Sita",
                "Raja",
            ]

            # each step is about 3.3 km north of the previous one
            for day, latitude in ((2, -6.15), (3, -6.12), (4, -6.09)):
                response = client.post(
                    "/v1/tigers/1/sightings",
                    json={
                        "seen_at": f"2024-01-0{day}T08:00:00Z",
                        "latitude": latitude,
                        "longitude": 108.0,
                        "image_data": _jpeg_data_uri((320, 240)),
                    },
                    headers={"X-Request-ID": f"step-{day}"},
                )
                assert response.status_code == 201, response.text

            # measured from the last sighting, not the original position
            too_far = client.post(
                "/v1/tigers/1/sightings",
                json={
                    "seen_at": "2024-01-05T08:00:00Z",
                    "latitude": -6.18,
                    "longitude": 108.0,
                    "image_data": _jpeg_data_uri((320, 240)),
                },
            )
            assert too_far.status_code == 422
            assert too_far.json()["distance"] == 10.01

            sightings = client.get("/v1/tigers/1/sightings").json()["data"]
            assert [s["latitude"] for s in sightings] == [-6.09, -6.12, -6.15]
            assert all(
                s["image_data"].startswith("data:image/jpeg;base64,")
                for s in sightings
            )

            tigers = client.get("/v1/tigers").json()["data"]
            assert [t["name"] for t in tigers] == ["Raja", "Sita"]
            assert tigers[0]["last_seen_latitude"] == -6.09
            assert client.get("/v1/tigers/2/sightings").json() == {"data": []}
    finally:
        api_tigers.get_service.cache_clear()

"""Pytest configuration and fixtures."""

import shutil
import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest
import requests

from gtfs_od_pipeline.gtfs.models import Feed, Route, Stop, StopTime, Trip


@pytest.fixture
def gtfs_minimal() -> Path:
    """Path to minimal GTFS fixture."""
    return Path(__file__).parent / "fixtures" / "gtfs_minimal"


@pytest.fixture
def overrides_file() -> Path:
    """Path to the rules document matching the minimal fixture."""
    return Path(__file__).parent / "fixtures" / "overrides.json"


@pytest.fixture
def overrides_multi() -> Path:
    """Path to a multi-feed rules document."""
    return Path(__file__).parent / "fixtures" / "overrides_multi.json"


@pytest.fixture
def gtfs_zip(gtfs_minimal: Path, tmp_path: Path) -> Path:
    """Minimal fixture packed as a zip archive with a top-level folder."""
    archive = tmp_path / "gtfs_minimal.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        for table in sorted(gtfs_minimal.glob("*.txt")):
            zf.write(table, f"feed/{table.name}")
    return archive


@pytest.fixture
def tmp_output(tmp_path: Path) -> Path:
    """Temporary output directory."""
    output_dir = tmp_path / "site"
    output_dir.mkdir()
    yield output_dir
    # Cleanup
    if output_dir.exists():
        shutil.rmtree(output_dir)


@pytest.fixture
def make_feed() -> Callable[[dict[str, list[tuple[str, str]]]], Feed]:
    """Factory for small in-memory feeds: trip id -> [(stop id, time), ...]."""

    def build(visits: dict[str, list[tuple[str, str]]]) -> Feed:
        stop_ids = sorted({stop_id for rows in visits.values() for stop_id, _ in rows})
        return Feed(
            stops=[Stop(stop_id=s, name=s, lat=None, lon=None) for s in stop_ids],
            routes=[Route(route_id="R", route_short_name="R", route_long_name="", route_type=3)],
            trips=[Trip(route_id="R", service_id="S", trip_id=trip_id) for trip_id in visits],
            stop_times=[
                StopTime(
                    trip_id=trip_id,
                    stop_id=stop_id,
                    stop_sequence=seq,
                    arrival_time=time,
                    departure_time=time,
                )
                for trip_id, rows in visits.items()
                for seq, (stop_id, time) in enumerate(rows, start=1)
            ],
        )

    return build


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, content: bytes, status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")

    def iter_content(self, chunk_size: int = 1) -> list[bytes]:
        return [
            self.content[i : i + chunk_size] for i in range(0, len(self.content), chunk_size)
        ]


class FakeHTTP:
    """URL -> body (bytes) or status code (int); unknown URLs refuse to connect."""

    def __init__(self) -> None:
        self.routes: dict[str, bytes | int] = {}
        self.calls: list[tuple[str, dict[str, object]]] = []

    def get(self, url: str, **kwargs: object) -> FakeResponse:
        self.calls.append((url, kwargs))
        if url not in self.routes:
            raise requests.exceptions.ConnectionError(f"Connection refused: {url}")
        served = self.routes[url]
        if isinstance(served, int):
            return FakeResponse(b"", served)
        return FakeResponse(served)


@pytest.fixture
def fake_http(monkeypatch: pytest.MonkeyPatch) -> FakeHTTP:
    """Replace requests.get with an in-memory URL table."""
    http = FakeHTTP()
    monkeypatch.setattr(requests, "get", http.get)
    return http

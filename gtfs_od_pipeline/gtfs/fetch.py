"""Acquisition of feed archives and rules documents over HTTP."""

import logging
from pathlib import Path

import requests

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1 << 16


class AcquisitionError(RuntimeError):
    """A feed or rules document could not be obtained."""


def is_remote(source: str) -> bool:
    """True when the source is an http(s) URL."""
    return source.lower().startswith(("http://", "https://"))


def download_feed(url: str, dest_dir: Path, timeout: float = 60.0) -> Path:
    """Download a feed archive into dest_dir and return the file path."""
    logger.info(f"Downloading GTFS: {url}")
    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / "source_feed.zip"
    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            with open(target, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
    except requests.exceptions.RequestException as e:
        raise AcquisitionError(f"Failed to download feed from {url}: {e}") from e

    logger.info(f"Downloaded {target.stat().st_size} bytes to {target}")
    return target


def fetch_text(url: str, timeout: float = 60.0) -> str:
    """Fetch a text document (rules JSON) from a URL."""
    logger.info(f"Fetching {url}")
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise AcquisitionError(f"Failed to fetch {url}: {e}") from e
    return response.text

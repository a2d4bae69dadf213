"""Rules document parsing, loading and write-back.

A rules document maps "<trip_id>::<stop_id>" keys to restriction objects::

    {
      "version": 1,
      "rules": {"T1::C": {"mode": "dropoff"}},
      "stopDefaults": {"C": {"mode": "pickup"}}
    }

Older and hand-written shapes are accepted too: the body may be nested
under ``overrides.<feed slug>``, under ``project.extras`` or ``extras``
(editor project files), may use ``restrictions`` or ``map`` instead of ``rules``, may
be the bare key mapping, or may be an array of rows carrying ``trip_id``,
``stop_id`` and ``mode``.
"""

import json
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gtfs_od_pipeline.gtfs.fetch import fetch_text
from gtfs_od_pipeline.overrides.rules import (
    CustomRule,
    Restriction,
    RuleKey,
    RuleStore,
    StopDefaultStore,
    clamp_to_trip,
    make_restriction,
    restriction_to_dict,
)

logger = logging.getLogger(__name__)

DOCUMENT_VERSION = 1

# Tried in order; the first one present in a key wins
KEY_DELIMITERS = ("::", "|", "/", "—", "–", "-")
_SPACED_KEY = re.compile(r"^(.+?)\s+([A-Za-z0-9._:-]{3,})$")


class OverrideDocumentError(ValueError):
    """Rules document text could not be parsed."""


@dataclass
class OverrideDocument:
    """Parsed rules document."""

    rules: RuleStore = field(default_factory=RuleStore)
    stop_defaults: StopDefaultStore = field(default_factory=StopDefaultStore)
    version: int | str | None = None
    source: str = ""


def split_key(key: str) -> tuple[str, str]:
    """Split a rule key into (trip_id, stop_id); ("", "") when it cannot be split."""
    for delimiter in KEY_DELIMITERS:
        if delimiter in key:
            trip_id, stop_id = key.split(delimiter, 1)
            return trip_id.strip(), stop_id.strip()
    match = _SPACED_KEY.match(key.strip())
    if match:
        return match.group(1).strip(), match.group(2).strip()
    return "", ""


def parse_document(
    data: Any,
    slug: str = "",
    trip_stops: Mapping[str, Sequence[str]] | None = None,
) -> OverrideDocument:
    """Build an OverrideDocument from decoded JSON.

    trip_stops (trip_id -> ordered stop ids) is used to clamp custom stop
    lists to the stops actually upstream/downstream in each trip.
    """
    trip_stops = trip_stops or {}
    body = _select_body(data, slug)
    document = OverrideDocument()

    if isinstance(body, list):
        _read_rows(body, document.rules, trip_stops)
        return document
    if not isinstance(body, dict):
        return document

    document.version = body.get("version")
    extras = _extras(body)
    source = body.get("rules")
    if source is None:
        source = body.get("restrictions")
    if source is None:
        source = body.get("map")
    if source is None:
        source = extras.get("restrictions")
    if source is None:
        source = body

    if isinstance(source, list):
        _read_rows(source, document.rules, trip_stops)
    elif isinstance(source, dict):
        _read_mapping(source, document.rules, trip_stops)

    defaults = body.get("stopDefaults")
    if defaults is None:
        defaults = extras.get("stopDefaults", {})
    if isinstance(defaults, dict):
        for stop_id, raw in defaults.items():
            if isinstance(raw, dict):
                document.stop_defaults.set(str(stop_id), _restriction_from(raw))

    return document


def parse_document_text(
    text: str,
    slug: str = "",
    trip_stops: Mapping[str, Sequence[str]] | None = None,
) -> OverrideDocument:
    """Parse rules document JSON text."""
    if not text or not text.strip():
        return OverrideDocument()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise OverrideDocumentError(f"Rules document is not valid JSON: {e}") from e
    if not isinstance(data, (dict, list)):
        raise OverrideDocumentError(
            f"Rules document must be an object or an array, got {type(data).__name__}"
        )
    return parse_document(data, slug, trip_stops)


def load_document(
    path: str = "",
    url: str = "",
    slug: str = "",
    trip_stops: Mapping[str, Sequence[str]] | None = None,
    timeout: float = 60.0,
) -> OverrideDocument:
    """Load a rules document, preferring the URL when both are given.

    A configured URL that cannot be fetched raises AcquisitionError. An
    absent local file yields an empty document.
    """
    if url:
        logger.info(f"Overrides: fetching from {url}")
        document = parse_document_text(fetch_text(url, timeout=timeout), slug, trip_stops)
        document.source = url
    elif path and Path(path).is_file():
        logger.info(f"Overrides: reading {path}")
        text = Path(path).read_text(encoding="utf-8-sig")
        document = parse_document_text(text, slug, trip_stops)
        document.source = path
    else:
        logger.warning(f"Overrides: none found at {path!r} (continuing with no rules)")
        document = OverrideDocument(source=path)

    logger.info(
        f"Loaded {len(document.rules)} rules and {len(document.stop_defaults)} stop defaults"
    )
    return document


def dump_document(document: OverrideDocument) -> dict[str, Any]:
    """Serialize to the canonical document shape with sorted keys."""
    rules = {
        str(key): restriction_to_dict(restriction)
        for key, restriction in sorted(document.rules.items(), key=lambda item: item[0])
    }
    defaults = {
        stop_id: restriction_to_dict(restriction)
        for stop_id, restriction in sorted(document.stop_defaults.items(), key=lambda item: item[0])
    }
    version = document.version if document.version is not None else DOCUMENT_VERSION
    return {"version": version, "rules": rules, "stopDefaults": defaults}


def embed_document(existing: Any, slug: str, body: dict[str, Any]) -> dict[str, Any]:
    """Insert or replace one feed's body inside a multi-feed document."""
    container: dict[str, Any] = dict(existing) if isinstance(existing, dict) else {}
    feeds = container.get("overrides")
    feeds = dict(feeds) if isinstance(feeds, dict) else {}
    feeds[slug] = body
    container["overrides"] = feeds
    return container


def save_document(path: str, document: OverrideDocument, slug: str = "") -> Path:
    """Write a document; with a slug, upsert it into the multi-feed file at path."""
    target = Path(path)
    body = dump_document(document)
    if slug:
        existing: Any = {}
        if target.is_file():
            existing = json.loads(target.read_text(encoding="utf-8-sig") or "{}")
        payload: dict[str, Any] = embed_document(existing, slug, body)
    else:
        payload = body

    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
        f.write("\n")
    logger.info(f"Wrote {len(document.rules)} rules to {target}")
    return target


def _select_body(data: Any, slug: str) -> Any:
    if not isinstance(data, dict):
        return data
    feeds = data.get("overrides")
    if not isinstance(feeds, dict):
        return data
    if slug and slug in feeds:
        return feeds[slug]
    if len(feeds) == 1:
        only_slug = next(iter(feeds))
        logger.info(f"Overrides: using the only feed body present ({only_slug})")
        return feeds[only_slug]
    logger.warning(f"Overrides: no body for feed {slug!r} among {sorted(feeds)}")
    return {}


def _extras(body: dict[str, Any]) -> dict[str, Any]:
    project = body.get("project")
    if isinstance(project, dict) and isinstance(project.get("extras"), dict):
        return project["extras"]
    if isinstance(body.get("extras"), dict):
        return body["extras"]
    return {}


def _restriction_from(raw: Mapping[str, Any]) -> Restriction:
    drop = raw.get("dropoffOnlyFrom")
    pick = raw.get("pickupOnlyTo")
    return make_restriction(
        raw.get("mode", "normal"),
        dropoff_only_from=drop if isinstance(drop, list) else None,
        pickup_only_to=pick if isinstance(pick, list) else None,
    )


def _store(
    rules: RuleStore,
    key: RuleKey,
    raw: Mapping[str, Any],
    trip_stops: Mapping[str, Sequence[str]],
) -> None:
    restriction = _restriction_from(raw)
    if isinstance(restriction, CustomRule):
        restriction = clamp_to_trip(restriction, trip_stops.get(key.trip_id, ()), key.stop_id)
    rules.set(key, restriction)


def _read_mapping(
    source: Mapping[str, Any],
    rules: RuleStore,
    trip_stops: Mapping[str, Sequence[str]],
) -> None:
    for raw_key, raw in source.items():
        if not isinstance(raw, dict) or not raw.get("mode"):
            continue
        trip_id, stop_id = split_key(str(raw_key))
        if not trip_id or not stop_id:
            logger.debug(f"Skipping unparseable rule key {raw_key!r}")
            continue
        _store(rules, RuleKey(trip_id, stop_id), raw, trip_stops)


def _read_rows(
    rows: Sequence[Any],
    rules: RuleStore,
    trip_stops: Mapping[str, Sequence[str]],
) -> None:
    for raw in rows:
        if not isinstance(raw, dict):
            continue
        trip_id = str(raw.get("trip_id") or "").strip()
        stop_id = str(raw.get("stop_id") or "").strip()
        # Rows without a mode are stored as normal; an explicit empty mode is skipped
        if raw.get("mode") is None:
            raw = {**raw, "mode": "normal"}
        if not trip_id or not stop_id or not raw["mode"]:
            continue
        _store(rules, RuleKey(trip_id, stop_id), raw, trip_stops)

"""Boarding/alighting restrictions and the stores that hold them."""

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "::"


class RuleMode(str, Enum):
    """Restriction mode as written in rules documents."""

    NORMAL = "normal"
    PICKUP = "pickup"
    DROPOFF = "dropoff"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: object) -> "RuleMode":
        """Parse a mode string; anything unknown is normal."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NORMAL


@dataclass(frozen=True)
class NormalRule:
    """No restriction: board and alight allowed."""

    mode: ClassVar[RuleMode] = RuleMode.NORMAL


@dataclass(frozen=True)
class PickupOnly:
    """Boarding only; alighting disabled."""

    mode: ClassVar[RuleMode] = RuleMode.PICKUP


@dataclass(frozen=True)
class DropoffOnly:
    """Alighting only; boarding disabled."""

    mode: ClassVar[RuleMode] = RuleMode.DROPOFF


@dataclass(frozen=True)
class CustomRule:
    """Origin/destination restriction that splits the trip in two.

    The stop lists document which upstream origins may alight here and
    which downstream destinations may be reached when boarding here.
    They are carried through documents but the compiler only looks at
    the mode.
    """

    dropoff_only_from: tuple[str, ...] | None = None
    pickup_only_to: tuple[str, ...] | None = None

    mode: ClassVar[RuleMode] = RuleMode.CUSTOM


Restriction = NormalRule | PickupOnly | DropoffOnly | CustomRule


def make_restriction(
    mode: RuleMode | str,
    dropoff_only_from: Sequence[str] | None = None,
    pickup_only_to: Sequence[str] | None = None,
) -> Restriction:
    """Build the restriction for a mode; stop lists only apply to custom."""
    mode = RuleMode.parse(mode)
    if mode is RuleMode.PICKUP:
        return PickupOnly()
    if mode is RuleMode.DROPOFF:
        return DropoffOnly()
    if mode is RuleMode.CUSTOM:
        return CustomRule(
            dropoff_only_from=_as_ids(dropoff_only_from),
            pickup_only_to=_as_ids(pickup_only_to),
        )
    return NormalRule()


def restriction_to_dict(restriction: Restriction) -> dict[str, object]:
    """Serialize a restriction to its rules-document form."""
    data: dict[str, object] = {"mode": restriction.mode.value}
    if isinstance(restriction, CustomRule):
        if restriction.dropoff_only_from is not None:
            data["dropoffOnlyFrom"] = list(restriction.dropoff_only_from)
        if restriction.pickup_only_to is not None:
            data["pickupOnlyTo"] = list(restriction.pickup_only_to)
    return data


def clamp_to_trip(rule: CustomRule, trip_stops: Sequence[str], stop_id: str) -> CustomRule:
    """Keep only upstream origins and downstream destinations of stop_id in this trip."""
    if not trip_stops or stop_id not in trip_stops:
        return rule
    idx = list(trip_stops).index(stop_id)
    upstream = set(trip_stops[:idx])
    downstream = set(trip_stops[idx + 1 :])
    drop = None
    pick = None
    if rule.dropoff_only_from is not None:
        drop = tuple(s for s in rule.dropoff_only_from if s in upstream) or None
    if rule.pickup_only_to is not None:
        pick = tuple(s for s in rule.pickup_only_to if s in downstream) or None
    return CustomRule(dropoff_only_from=drop, pickup_only_to=pick)


@dataclass(frozen=True, order=True)
class RuleKey:
    """Address of one stop visit: (trip identity, stop identity).

    A trip that visits the same stop twice maps both visits to one key.
    """

    trip_id: str
    stop_id: str

    def __str__(self) -> str:
        return f"{self.trip_id}{KEY_SEPARATOR}{self.stop_id}"


class RuleStore:
    """Restrictions keyed by (trip, stop). The only rules the compiler reads."""

    def __init__(self, rules: Mapping[RuleKey, Restriction] | None = None) -> None:
        self._rules: dict[RuleKey, Restriction] = dict(rules or {})

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[RuleKey]:
        return iter(self._rules)

    def __contains__(self, key: object) -> bool:
        return key in self._rules

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuleStore):
            return NotImplemented
        return self._rules == other._rules

    def __repr__(self) -> str:
        return f"RuleStore({len(self._rules)} rules)"

    def get(self, trip_id: str, stop_id: str) -> Restriction | None:
        """Restriction at exactly this stop visit, if any."""
        return self._rules.get(RuleKey(trip_id, stop_id))

    def items(self) -> Iterator[tuple[RuleKey, Restriction]]:
        return iter(self._rules.items())

    def copy(self) -> "RuleStore":
        return RuleStore(self._rules)

    def set(self, key: RuleKey, restriction: Restriction) -> None:
        self._rules[key] = restriction

    def clear(self, key: RuleKey) -> bool:
        """Remove a rule; returns whether one was present."""
        return self._rules.pop(key, None) is not None

    def merge(self, other: "RuleStore") -> None:
        """Overlay another store's rules onto this one."""
        self._rules.update(other._rules)

    def apply_to_stop(
        self,
        trip_stops: Mapping[str, Sequence[str]],
        stop_id: str,
        restriction: Restriction,
    ) -> int:
        """Apply one rule at stop_id to every trip in trip_stops.

        Normal removes the rules instead of storing them. Custom stop
        lists are clamped to each trip's own upstream/downstream stops.
        Returns the number of keys written or removed.
        """
        changed = 0
        for trip_id, stops in trip_stops.items():
            key = RuleKey(trip_id, stop_id)
            if isinstance(restriction, NormalRule):
                changed += int(self.clear(key))
                continue
            if isinstance(restriction, CustomRule):
                self._rules[key] = clamp_to_trip(restriction, stops, stop_id)
            else:
                self._rules[key] = restriction
            changed += 1
        logger.debug(f"Applied {restriction.mode.value} at stop {stop_id} to {changed} trips")
        return changed

    def counts_by_mode(self) -> dict[str, int]:
        """Number of rules per mode, every mode present."""
        counts = {mode.value: 0 for mode in RuleMode}
        for restriction in self._rules.values():
            counts[restriction.mode.value] += 1
        return counts


class StopDefaultStore:
    """Per-stop default restrictions used by editing tools.

    Compiling never consults it.
    """

    def __init__(self, defaults: Mapping[str, Restriction] | None = None) -> None:
        self._defaults: dict[str, Restriction] = dict(defaults or {})

    def __len__(self) -> int:
        return len(self._defaults)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StopDefaultStore):
            return NotImplemented
        return self._defaults == other._defaults

    def get(self, stop_id: str) -> Restriction | None:
        return self._defaults.get(stop_id)

    def set(self, stop_id: str, restriction: Restriction | None) -> None:
        """Store a default; None or normal removes it."""
        if restriction is None or isinstance(restriction, NormalRule):
            self._defaults.pop(stop_id, None)
        else:
            self._defaults[stop_id] = restriction

    def clear(self, stop_id: str) -> bool:
        return self._defaults.pop(stop_id, None) is not None

    def items(self) -> Iterator[tuple[str, Restriction]]:
        return iter(self._defaults.items())


def _as_ids(values: Sequence[str] | None) -> tuple[str, ...] | None:
    if values is None:
        return None
    return tuple(str(v) for v in values)

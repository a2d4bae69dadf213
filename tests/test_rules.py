"""Tests for restrictions and rule stores."""

from gtfs_od_pipeline.overrides.rules import (
    CustomRule,
    DropoffOnly,
    NormalRule,
    PickupOnly,
    RuleKey,
    RuleMode,
    RuleStore,
    StopDefaultStore,
    clamp_to_trip,
    make_restriction,
    restriction_to_dict,
)


def test_rule_mode_parse() -> None:
    """Unknown or odd-cased modes are tolerated."""
    assert RuleMode.parse("pickup") is RuleMode.PICKUP
    assert RuleMode.parse(" DropOff ") is RuleMode.DROPOFF
    assert RuleMode.parse("bogus") is RuleMode.NORMAL
    assert RuleMode.parse(None) is RuleMode.NORMAL
    assert RuleMode.parse(RuleMode.CUSTOM) is RuleMode.CUSTOM


def test_make_restriction() -> None:
    """Stop lists only survive on custom rules."""
    assert make_restriction("pickup", dropoff_only_from=["A"]) == PickupOnly()
    assert make_restriction("dropoff") == DropoffOnly()
    assert make_restriction("whatever") == NormalRule()
    assert make_restriction("custom", ["A"], ["C"]) == CustomRule(("A",), ("C",))


def test_restriction_to_dict() -> None:
    """Custom lists are written only when present."""
    assert restriction_to_dict(DropoffOnly()) == {"mode": "dropoff"}
    assert restriction_to_dict(CustomRule()) == {"mode": "custom"}
    assert restriction_to_dict(CustomRule(pickup_only_to=("D",))) == {
        "mode": "custom",
        "pickupOnlyTo": ["D"],
    }


def test_clamp_to_trip() -> None:
    """Origins must be upstream and destinations downstream."""
    rule = CustomRule(dropoff_only_from=("A", "D", "X"), pickup_only_to=("A", "D"))

    clamped = clamp_to_trip(rule, ["A", "B", "C", "D"], "B")

    assert clamped == CustomRule(dropoff_only_from=("A",), pickup_only_to=("D",))


def test_clamp_to_trip_empty_becomes_none() -> None:
    """An emptied list is dropped entirely."""
    clamped = clamp_to_trip(CustomRule(pickup_only_to=("A",)), ["A", "B"], "B")

    assert clamped.pickup_only_to is None


def test_clamp_to_trip_unknown_stop() -> None:
    """Rules for stops the trip does not visit are left alone."""
    rule = CustomRule(dropoff_only_from=("A",))

    assert clamp_to_trip(rule, ["A", "B"], "Z") is rule
    assert clamp_to_trip(rule, [], "B") is rule


def test_rule_key_str() -> None:
    """Test key rendering."""
    assert str(RuleKey("T1", "C")) == "T1::C"


def test_store_set_get_clear() -> None:
    """Test basic store editing."""
    store = RuleStore()
    key = RuleKey("T1", "C")

    store.set(key, DropoffOnly())

    assert key in store
    assert store.get("T1", "C") == DropoffOnly()
    assert store.get("T1", "D") is None
    assert store.clear(key)
    assert not store.clear(key)
    assert len(store) == 0


def test_store_merge() -> None:
    """Merged rules overwrite existing keys."""
    store = RuleStore({RuleKey("T1", "A"): PickupOnly(), RuleKey("T1", "B"): PickupOnly()})

    store.merge(RuleStore({RuleKey("T1", "B"): DropoffOnly()}))

    assert store.get("T1", "A") == PickupOnly()
    assert store.get("T1", "B") == DropoffOnly()


def test_apply_to_stop() -> None:
    """Bulk apply clamps custom lists per trip."""
    store = RuleStore()
    trip_stops = {"T1": ["A", "B", "C"], "T2": ["C", "B", "A"]}

    changed = store.apply_to_stop(trip_stops, "B", CustomRule(("A",), ("C",)))

    assert changed == 2
    assert store.get("T1", "B") == CustomRule(("A",), ("C",))
    assert store.get("T2", "B") == CustomRule(None, None)


def test_apply_normal_to_stop_clears() -> None:
    """Applying normal removes the keys."""
    store = RuleStore({RuleKey("T1", "B"): PickupOnly(), RuleKey("T1", "C"): PickupOnly()})

    changed = store.apply_to_stop({"T1": ["A", "B", "C"], "T2": ["B"]}, "B", NormalRule())

    assert changed == 1
    assert list(store) == [RuleKey("T1", "C")]


def test_counts_by_mode() -> None:
    """Every mode is reported, including zeros."""
    store = RuleStore({RuleKey("T1", "A"): PickupOnly(), RuleKey("T2", "A"): CustomRule()})

    assert store.counts_by_mode() == {"normal": 0, "pickup": 1, "dropoff": 0, "custom": 1}


def test_stop_defaults() -> None:
    """Normal or None removes a stop default."""
    defaults = StopDefaultStore()

    defaults.set("C", PickupOnly())
    assert defaults.get("C") == PickupOnly()

    defaults.set("C", NormalRule())
    assert defaults.get("C") is None

    defaults.set("D", DropoffOnly())
    assert defaults.clear("D")
    assert len(defaults) == 0

"""Tests for pattern library helpers (validation, normalization, exclusions)."""

from __future__ import annotations

import pytest

from flipflow.orders.models import Carrier
from flipflow.orders.patterns import (
    PatternLibrary,
    clean_order_number,
    is_excluded_number,
    looks_like_compact_date,
    normalize_order_number,
    normalize_size,
)
from flipflow.orders.types import FieldName


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("75573966-75473725", "75473725"),
        ("01-95h9nc36st", "01-95H9NC36ST"),
        (" 12345678 ", "12345678"),
    ],
)
def test_normalize_order_number(raw, expected):
    assert normalize_order_number(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "--", "12", "CONFIRMATION", "ABCDEF", "1" * 41])
def test_clean_order_number_rejects(raw):
    assert clean_order_number(raw) is None


def test_clean_order_number_strips_dashes():
    assert clean_order_number("-AB123-") == "AB123"


@pytest.mark.parametrize("value", ["2024", "10001", "5551234567", "150", "00000000", "12-34"])
def test_excluded_numbers(value):
    assert is_excluded_number(value)


def test_real_tracking_number_not_excluded():
    assert not is_excluded_number("123456789012")


def test_compact_date():
    assert looks_like_compact_date("20240315")
    assert not looks_like_compact_date("20241315")
    assert not looks_like_compact_date("75473725")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("9.5", "US 9.5"), ("xl", "US XL"), ("W  8", "US W 8"), ("US 10", "US 10")],
)
def test_normalize_size(raw, expected):
    assert normalize_size(raw) == expected


def test_default_library_has_rules_for_every_field():
    library = PatternLibrary.default()
    for field_name in FieldName:
        assert library.rules_for(field_name)
    assert library.version == "v1"


def test_tracking_rules_carry_carriers():
    rules = PatternLibrary.default().rules_for(FieldName.TRACKING_NUMBER)
    carriers = {rule.name: rule.carrier for rule in rules}
    assert carriers["ups"] is Carrier.UPS
    assert carriers["usps_priority"] is Carrier.USPS
    assert carriers["generic"] is Carrier.UNKNOWN


def test_size_poison_values_from_argument():
    library = PatternLibrary.default(size_poison_values=["15", "US 4"])
    assert library.poison_values_for(FieldName.SIZE) == frozenset({"15", "US 4"})
    assert library.poison_values_for(FieldName.ORDER_NUMBER) == frozenset()


def test_tracking_rule_validators_and_failure_reason_normalizers():
    library = PatternLibrary.default()
    tracking = {r.name: r for r in library.rules_for(FieldName.TRACKING_NUMBER)}
    assert tracking["fedex_ground"].validate("123456789012")
    assert not tracking["generic"].validate("5551234567")
    assert tracking["ups"].validate("1Z999AA10123456784")

    keyword = next(
        r for r in library.rules_for(FieldName.FAILURE_REASON) if r.name == "keyword:Box Damage"
    )
    assert keyword.normalize("Damaged box") == "Box Damage"

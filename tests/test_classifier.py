# tests/test_classifier.py

import pytest

from sales_bi import config
from sales_bi.classifier import (
    CascadeMode,
    DivisionClassifier,
    is_internal_customer,
    match_keyword_rules,
    match_supplier,
    normalize_division,
)
from sales_bi.lookups import build_lookups


def _classifier():
    lookups = build_lookups({
        "brands": [
            {"brand_id": 1, "brand_name": "Lucky Me"},
            {"brand_id": 2, "brand_name": "CDO"},
            {"brand_id": 3, "brand_name": "Datu Puti"},
        ],
        "sections": [
            {"section_id": 10, "section_name": "Ready to Eat"},
            {"section_id": 11, "section_name": "Frozen Desserts"},
        ],
        "products": [
            {"product_id": "DRY", "product_name": "Pancit Canton", "product_brand": 1},
            {"product_id": "FRZ", "product_name": "Funtastyk Young Pork Tocino", "product_brand": 2},
            {"product_id": "IND", "product_name": "Vinegar 1L", "product_brand": 3},
            {"product_id": "MP", "product_name": "Pinoy Bowl", "product_section": 10},
            {"product_id": "SUP", "product_name": "Assorted Goods"},
            {"product_id": "DOG", "product_name": "Jumbo Hotdog"},
            {"product_id": "BARE"},
        ],
        "product_suppliers": [{"id": 1, "product_id": "SUP", "supplier_id": 9}],
        "suppliers": [{"id": 9, "supplier_name": "Virginia Food Inc"}],
    })
    return DivisionClassifier(lookups)


@pytest.mark.parametrize("product_id, expected", [
    ("DRY", "Dry Goods"),
    ("FRZ", "Frozen Goods"),
    ("IND", "Industrial"),
    ("MP", "Mama Pina's"),
    ("SUP", "Frozen Goods"),
    ("DOG", "Frozen Goods"),
    ("BARE", "Dry Goods"),
    ("NOT-IN-LOOKUPS", "Dry Goods"),
])
def test_full_cascade(product_id, expected):
    assert _classifier().classify(product_id) == expected


def test_classify_is_total():
    classifier = _classifier()
    products = ["DRY", "FRZ", "IND", "MP", "SUP", "DOG", "BARE", "", "??"]
    for mode in CascadeMode:
        for pid in products:
            for customer in (None, "", "Walk-in Customer", "Aling Nena Store"):
                assert classifier.classify(pid, customer, mode) in config.ALL_DIVISIONS


def test_classify_is_deterministic():
    first = _classifier()
    second = _classifier()
    for pid in ("DRY", "FRZ", "SUP", "BARE"):
        results = {first.classify(pid) for _ in range(5)}
        assert results == {second.classify(pid)}


def test_internal_customer_wins_only_in_full_mode():
    classifier = _classifier()
    assert classifier.classify("FRZ", "EMPLOYEE PURCHASE") == "Internal"
    assert classifier.classify("FRZ", "EMPLOYEE PURCHASE", CascadeMode.REDUCED) == "Frozen Goods"
    # the cache is keyed on the internal flag, not just the product
    assert classifier.classify("FRZ", "Aling Nena Store") == "Frozen Goods"


def test_reduced_mode_skips_supplier_names():
    classifier = _classifier()
    assert classifier.classify("SUP", mode=CascadeMode.FULL) == "Frozen Goods"
    assert classifier.classify("SUP", mode=CascadeMode.REDUCED) == "Dry Goods"


def test_supplier_only_mode_ignores_brands():
    classifier = _classifier()
    assert classifier.classify("SUP", mode=CascadeMode.SUPPLIER_ONLY) == "Frozen Goods"
    assert classifier.classify("FRZ", mode=CascadeMode.SUPPLIER_ONLY) == "Dry Goods"


def test_classify_many():
    assert _classifier().classify_many(["DRY", "IND"]) == {"DRY": "Dry Goods", "IND": "Industrial"}


def test_rule_helpers():
    assert is_internal_customer("walk-in") is True
    assert is_internal_customer("") is False
    assert match_keyword_rules("", "FROZEN DESSERTS", "") == "Frozen Goods"
    assert match_keyword_rules("", "", "") is None
    assert match_supplier("men2 marketing corp") == "Dry Goods"
    assert match_supplier(None) is None


@pytest.mark.parametrize("name, expected", [
    ("Frozen", "Frozen Goods"),
    ("Dry", "Dry Goods"),
    ("Industrial", "Industrial"),
    ("Internal Goods", "Internal"),
    ("Something Else", "Dry Goods"),
    ("", "Dry Goods"),
])
def test_normalize_division(name, expected):
    assert normalize_division(name) == expected

# classifier.py
"""
Division Classifier.

Assigns every product (optionally in the context of a customer) to exactly
one member of ``config.ALL_DIVISIONS``. The rules are tried in order and the
first match wins:

  1. internal customer keyword      -> Internal
  2. brand / section keyword table  -> that division (table order is the tie-break)
  3. primary supplier name table    -> that division
  4. frozen section / hotdog name   -> Frozen Goods
  5. default                        -> Dry Goods

Which rules are consulted depends on the cascade mode. Sales lines use the
full cascade; returns historically used a reduced one, and the supplier
league only ever looked at supplier names.
"""

import enum

from . import config
from .validator import clean_and_trim_string


class CascadeMode(enum.Enum):
    FULL = "full"
    REDUCED = "reduced"
    SUPPLIER_ONLY = "supplier_only"


RULE_STEPS = {
    CascadeMode.FULL: ("customer", "keywords", "supplier", "heuristic"),
    CascadeMode.REDUCED: ("keywords", "heuristic"),
    CascadeMode.SUPPLIER_ONLY: ("supplier",),
}

# Upper-cased once at import; matching is plain substring containment
_KEYWORD_RULES = tuple(
    (
        division,
        tuple(b.upper() for b in rules["brands"]),
        tuple(s.upper() for s in rules["sections"]),
    )
    for division, rules in config.DIVISION_RULES.items()
)
_SUPPLIER_RULES = tuple((key.upper(), division) for key, division in config.SUPPLIER_TO_DIVISION)
_INTERNAL_KEYWORDS = tuple(k.upper() for k in config.INTERNAL_CUSTOMER_KEYWORDS)


def is_internal_customer(customer_name):
    name = clean_and_trim_string(customer_name).upper()
    if not name:
        return False
    return any(keyword in name for keyword in _INTERNAL_KEYWORDS)


def match_keyword_rules(brand, section, name):
    """Rule 2. Returns the first matching division or None."""
    for division, brands, sections in _KEYWORD_RULES:
        if any(b in brand or b in name for b in brands):
            return division
        if any(s in section for s in sections):
            return division
    return None


def match_supplier(supplier_name):
    """Rule 3. Returns the first matching division or None."""
    supplier_name = clean_and_trim_string(supplier_name).upper()
    if not supplier_name:
        return None
    for key, division in _SUPPLIER_RULES:
        if key in supplier_name:
            return division
    return None


def match_heuristic(section, name):
    """Rule 4."""
    if "FROZEN" in section or "HOTDOG" in name:
        return config.FROZEN_DIVISION
    return None


def normalize_division(name):
    """
    Maps an upstream division name onto the fixed enumeration.
    Unknown or empty names fall back to the default division.
    """
    name = clean_and_trim_string(name)
    name = config.DIVISION_ALIASES.get(name, name)
    if name in config.ALL_DIVISIONS:
        return name
    return config.DEFAULT_DIVISION


class DivisionClassifier:
    """
    Classifies products against one request's lookups.

    ``classify`` is total: a product missing from the lookups is classified
    with empty attributes and still lands in a division. Results are memoised
    per (product, internal-customer flag, mode) for the life of the instance.
    """

    def __init__(self, lookups):
        self.lookups = lookups
        self._cache = {}

    def classify(self, product_id, customer_name=None, mode=CascadeMode.FULL):
        steps = RULE_STEPS[mode]
        internal = "customer" in steps and is_internal_customer(customer_name)
        key = (product_id, internal, mode)
        if key not in self._cache:
            self._cache[key] = self._run_cascade(product_id, internal, steps)
        return self._cache[key]

    def _run_cascade(self, product_id, internal, steps):
        if internal:
            return config.INTERNAL_DIVISION

        info = self.lookups.product(product_id)
        brand = info.brand_name.upper() if info else ""
        section = info.section_name.upper() if info else ""
        name = info.name.upper() if info else ""

        for step in steps:
            if step == "keywords":
                division = match_keyword_rules(brand, section, name)
            elif step == "supplier":
                division = match_supplier(self.lookups.supplier_name(product_id))
            elif step == "heuristic":
                division = match_heuristic(section, name)
            else:
                continue
            if division:
                return division
        return config.DEFAULT_DIVISION

    def classify_many(self, product_ids, mode=CascadeMode.FULL):
        """``{product_id: division}`` for a batch of products without customer context."""
        return {pid: self.classify(pid, mode=mode) for pid in product_ids}

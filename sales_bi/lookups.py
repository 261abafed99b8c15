# lookups.py
"""
Lookup indexes built from the raw collections of one request.

All keys go through ``validator.safe_id`` so scalar and nested-object
references address the same entry. Rows that are not dicts or lack a key
are skipped; building an index never fails.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional

from . import config
from .validator import clean_and_trim_string, clean_numeric, first_present, safe_id


@dataclass(frozen=True)
class ProductInfo:
    product_id: str
    name: str
    brand_name: str = ""
    section_name: str = ""
    unit_cost: float = 0.0
    unit_price: float = 0.0
    stock: float = 0.0
    parent_id: str = ""


def _rows(records):
    return (r for r in (records or []) if isinstance(r, dict))


def build_name_index(records, key_field, name_field, upper=False) -> Dict[str, str]:
    """``{key: name}`` for a flat collection; later duplicates do not override."""
    index: Dict[str, str] = {}
    for row in _rows(records):
        key = safe_id(row.get(key_field))
        if not key or key in index:
            continue
        name = clean_and_trim_string(row.get(name_field))
        index[key] = name.upper() if upper else name
    return index


def build_product_index(products, brand_names=None, section_names=None) -> Dict[str, ProductInfo]:
    brand_names = brand_names or {}
    section_names = section_names or {}
    index: Dict[str, ProductInfo] = {}

    for row in _rows(products):
        pid = safe_id(row.get("product_id"))
        if not pid or pid in index:
            continue
        index[pid] = ProductInfo(
            product_id=pid,
            name=clean_and_trim_string(row.get("product_name")),
            brand_name=brand_names.get(safe_id(row.get("product_brand")), ""),
            section_name=section_names.get(safe_id(row.get("product_section")), ""),
            unit_cost=clean_numeric(first_present(row, ("unit_cost", "estimated_unit_cost"))),
            unit_price=clean_numeric(first_present(row, ("unit_price", "price_per_unit", "priceA"))),
            stock=clean_numeric(first_present(row, ("stock", "inventory", "quantity"))),
            parent_id=_parent_of(row),
        )
    return index


def _parent_of(row) -> str:
    parent = safe_id(row.get("parent_id"))
    # 0 is how the upstream store spells "no parent"
    return "" if parent in ("", "0") else parent


def build_product_master(products) -> Dict[str, str]:
    """
    ``{product_id: master_product_id}``. A product without a parent is its
    own master; parent chains are followed to their root, and a cycle stops
    at the product where it was detected.
    """
    parents: Dict[str, str] = {}
    for row in _rows(products):
        pid = safe_id(row.get("product_id"))
        if pid and pid not in parents:
            parents[pid] = _parent_of(row)

    master: Dict[str, str] = {}
    for pid in parents:
        current = pid
        seen = {pid}
        while parents.get(current):
            nxt = parents[current]
            if nxt in seen:
                break
            seen.add(nxt)
            current = nxt
        master[pid] = current
    return master


def build_primary_supplier(mappings) -> Dict[str, str]:
    """
    ``{product_id: supplier_id}`` from product_per_supplier rows.

    Rows are ordered by their own id ascending (a missing id sorts as 0) and
    the first row seen for a product wins. The sort is stable, so rows tied
    on id keep their fetch order.
    """
    rows = [r for r in _rows(mappings)]
    rows.sort(key=lambda r: clean_numeric(safe_id(r.get("id")) or 0))

    primary: Dict[str, str] = {}
    for row in rows:
        pid = safe_id(row.get("product_id"))
        sid = safe_id(row.get("supplier_id"))
        if pid and sid and pid not in primary:
            primary[pid] = sid
    return primary


def build_salesman_division(salesmen) -> Dict[str, str]:
    index: Dict[str, str] = {}
    for row in _rows(salesmen):
        sid = safe_id(row.get("id"))
        if sid and sid not in index:
            index[sid] = safe_id(row.get("division_id"))
    return index


@dataclass
class Lookups:
    products: Dict[str, ProductInfo] = field(default_factory=dict)
    product_master: Dict[str, str] = field(default_factory=dict)
    primary_supplier: Dict[str, str] = field(default_factory=dict)
    supplier_names: Dict[str, str] = field(default_factory=dict)
    salesman_names: Dict[str, str] = field(default_factory=dict)
    salesman_division: Dict[str, str] = field(default_factory=dict)
    division_names: Dict[str, str] = field(default_factory=dict)
    customer_names: Dict[str, str] = field(default_factory=dict)
    customer_store_types: Dict[str, str] = field(default_factory=dict)
    brand_names: Dict[str, str] = field(default_factory=dict)
    section_names: Dict[str, str] = field(default_factory=dict)
    branch_names: Dict[str, str] = field(default_factory=dict)

    def master_of(self, product_id: str) -> str:
        return self.product_master.get(product_id, product_id)

    def product(self, product_id: str) -> Optional[ProductInfo]:
        """The product row, or its master's row when the variant is unknown."""
        info = self.products.get(product_id)
        if info is None:
            info = self.products.get(self.master_of(product_id))
        return info

    def product_name(self, product_id: str) -> str:
        info = self.product(product_id)
        if info and info.name:
            return info.name
        return config.UNKNOWN_PRODUCT

    def supplier_of(self, product_id: str) -> str:
        """Primary supplier id of a product, falling back to its master's."""
        sid = self.primary_supplier.get(product_id)
        if not sid:
            sid = self.primary_supplier.get(self.master_of(product_id), "")
        return sid

    def supplier_name(self, product_id: str) -> str:
        """Raw supplier name, '' when unmapped."""
        return self.supplier_names.get(self.supplier_of(product_id), "")

    def supplier_label(
        self,
        product_id: str,
        name_hints: bool = False,
        unmapped: str = config.INTERNAL_OTHERS,
    ) -> str:
        """
        Display name of a product's primary supplier.

        A mapping to a supplier that is not in the suppliers collection
        reads "No Supplier"; a product with no mapping at all reads
        ``unmapped``, unless ``name_hints`` recognises its product name.
        """
        sid = self.supplier_of(product_id)
        if sid:
            return self.supplier_names.get(sid) or config.NO_SUPPLIER

        if name_hints:
            product_name = self.product_name(product_id).upper()
            for keyword, label in config.PRODUCT_NAME_SUPPLIER_HINTS:
                if keyword in product_name:
                    return label
        return unmapped

    def customer_label(self, customer_code: str) -> str:
        name = self.customer_names.get(customer_code)
        if name:
            return name
        return f"Customer {customer_code}" if customer_code else config.UNASSIGNED

    def salesman_label(self, salesman_id: str) -> str:
        return self.salesman_names.get(salesman_id) or config.UNASSIGNED

    def branch_label(self, branch_id: str) -> str:
        return self.branch_names.get(branch_id) or config.UNKNOWN_BRANCH

    def salesman_division_name(self, salesman_id: str) -> str:
        """Upstream division name of a salesman, '' when unmapped."""
        division_id = self.salesman_division.get(salesman_id, "")
        return self.division_names.get(division_id, "") if division_id else ""


def _customer_names(customers) -> Dict[str, str]:
    index: Dict[str, str] = {}
    for row in _rows(customers):
        code = safe_id(row.get("customer_code"))
        if not code or code in index:
            continue
        index[code] = clean_and_trim_string(
            first_present(row, ("store_name", "customer_name"))
        )
    return index


def build_lookups(raw: Mapping[str, Iterable]) -> Lookups:
    """Builds every index a dashboard needs from ``{name: records}``."""
    brand_names = build_name_index(raw.get("brands"), "brand_id", "brand_name", upper=True)
    section_names = build_name_index(raw.get("sections"), "section_id", "section_name", upper=True)

    return Lookups(
        products=build_product_index(raw.get("products"), brand_names, section_names),
        product_master=build_product_master(raw.get("products")),
        primary_supplier=build_primary_supplier(raw.get("product_suppliers")),
        supplier_names=build_name_index(raw.get("suppliers"), "id", "supplier_name"),
        salesman_names=build_name_index(raw.get("salesmen"), "id", "salesman_name"),
        salesman_division=build_salesman_division(raw.get("salesmen")),
        division_names=build_name_index(raw.get("divisions"), "division_id", "division_name"),
        customer_names=_customer_names(raw.get("customers")),
        customer_store_types=build_name_index(raw.get("customers"), "customer_code", "store_type"),
        brand_names=brand_names,
        section_names=section_names,
        branch_names=build_name_index(raw.get("branches"), "id", "branch_name"),
    )

# config.py
import os
from types import MappingProxyType

# ============================================================
# UPSTREAM ITEM STORE (Directus)
# ============================================================
DIRECTUS_URL = os.getenv("DIRECTUS_URL", "http://localhost:8055").rstrip("/")

# Any of these may hold the static token; an empty token means unauthenticated
DIRECTUS_TOKEN = (
    os.getenv("DIRECTUS_TOKEN")
    or os.getenv("DIRECTUS_ACCESS_TOKEN")
    or os.getenv("DIRECTUS_STATIC_TOKEN")
    or ""
)

REQUEST_TIMEOUT = float(os.getenv("DIRECTUS_TIMEOUT", "60"))
PAGE_SIZE = int(os.getenv("DIRECTUS_PAGE_SIZE", "1000"))
MAX_PAGES = int(os.getenv("DIRECTUS_MAX_PAGES", "300"))

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-this-in-production")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Fields requested per collection (a missing field makes Directus reject the call)
COLLECTION_FIELDS = MappingProxyType({
    "sales_invoice": (
        "invoice_id,invoice_no,order_id,invoice_date,dispatch_date,"
        "salesman_id,customer_code,branch_id,total_amount,discount_amount"
    ),
    "sales_invoice_details": (
        "invoice_no,product_id,quantity,total_amount,discount_amount,unit_price"
    ),
    "products": "*",
    "product_per_supplier": "id,product_id,supplier_id",
    "suppliers": "id,supplier_name",
    "salesman": "id,salesman_name,division_id,isActive",
    "division": "division_id,division_name",
    "sales_return": (
        "return_id,return_number,order_id,invoice_no,"
        "return_date,received_at,created_at,updated_at"
    ),
    "sales_return_details": (
        "return_no,product_id,quantity,total_amount,gross_amount,"
        "discount_amount,unit_price"
    ),
    "collection": "collection_date,isCancelled,totalAmount,salesman_id",
    "brand": "brand_id,brand_name",
    "sections": "section_id,section_name",
    "customer": "id,customer_code,customer_name,store_name,store_type,isActive,date_entered",
    "branches": "id,branch_name",
    "deals": "*",
    "targets": "*",
    "user": "*",
})

# ============================================================
# DIVISIONS
# ============================================================
ALL_DIVISIONS = (
    "Dry Goods",
    "Frozen Goods",
    "Industrial",
    "Mama Pina's",
    "Internal",
)

DEFAULT_DIVISION = "Dry Goods"
FROZEN_DIVISION = "Frozen Goods"
INTERNAL_DIVISION = "Internal"

# Names the upstream `division` collection uses for our divisions
DIVISION_ALIASES = MappingProxyType({
    "Frozen": "Frozen Goods",
    "Dry": "Dry Goods",
    "Internal Goods": "Internal",
})

# Checked in declaration order; the first division whose brands or
# sections match wins.
DIVISION_RULES = MappingProxyType({
    "Dry Goods": {
        "brands": (
            "Lucky Me", "Nescafe", "Kopiko", "Bear Brand", "Maggi", "Surf",
            "Downy", "Richeese", "Richoco", "Keratin", "KeratinPlus", "Dove",
            "Palmolive", "Safeguard", "Sunsilk", "Cream Silk",
            "Head & Shoulders", "Colgate", "Close Up", "Bioderm", "Casino",
            "Efficascent", "Great Taste", "Presto", "Tide", "Ariel",
            "Champion", "Callee", "Systemack", "Wings", "Pride", "Smart",
        ),
        "sections": (
            "Grocery", "Canned", "Noodles", "Beverages", "Non-Food",
            "Personal Care", "Snacks", "Biscuits", "Candy", "Coffee", "Milk",
            "Powder",
        ),
    },
    "Frozen Goods": {
        "brands": (
            "CDO", "Tender Juicy", "Mekeni", "Virginia", "Purefoods", "Aviko",
            "Swift", "Argentina", "Star", "Holiday", "Highland", "Bibbo",
            "Home Made", "Young Pork",
        ),
        "sections": (
            "Frozen", "Meat", "Processed Meat", "Cold Cuts", "Ice Cream",
            "Hotdog", "Chicken", "Pork",
        ),
    },
    "Industrial": {
        "brands": (
            "Mama Sita", "Datu Puti", "Silver Swan", "Golden Fiesta", "LPG",
            "Solane", "Gasul", "Fiesta", "UFC", "Super Q", "Biguerlai",
            "Equal", "Jufran",
        ),
        "sections": (
            "Condiments", "Oil", "Sacks", "Sugar", "Flour", "Industrial",
            "Gas", "Rice", "Salt",
        ),
    },
    "Mama Pina's": {
        "brands": ("Mama Pina", "Mama Pinas", "Mama Pina's"),
        "sections": ("Franchise", "Ready to Eat", "Kiosk", "Mama Pina", "MP"),
    },
    "Internal": {
        "brands": ("Internal", "Office Supplies", "House Account", "VOS"),
        "sections": ("Internal", "Office", "Supplies", "Use"),
    },
})

# Supplier-name keyword -> division, substring match in this order
SUPPLIER_TO_DIVISION = (
    ("MEN2", "Dry Goods"),
    ("MEN2 MARKETING", "Dry Goods"),
    ("PUREFOODS", "Frozen Goods"),
    ("CDO", "Frozen Goods"),
    ("INDUSTRIAL", "Industrial"),
    ("MAMA PINA", "Mama Pina's"),
    ("VIRGINIA", "Frozen Goods"),
    ("AVIKO", "Frozen Goods"),
    ("MEKENI", "Frozen Goods"),
    ("TIONGSAN", "Dry Goods"),
    ("CSI", "Dry Goods"),
    ("TSH", "Dry Goods"),
    ("JUMAPAS", "Dry Goods"),
    ("COSTSAVER", "Dry Goods"),
    ("RISING SUN", "Dry Goods"),
    ("MUNICIPAL", "Dry Goods"),
    ("INTERNAL", "Internal"),
    ("VOS", "Internal"),
)

# Customer display names that mark a sale as internal consumption
INTERNAL_CUSTOMER_KEYWORDS = (
    "WALK-IN",
    "WALK IN",
    "EMPLOYEE",
    "OFFICE",
    "INTERNAL USE",
    "INTERNAL",
)

# Stock view: supplier label guessed from the product name when a
# product has no supplier mapping
PRODUCT_NAME_SUPPLIER_HINTS = (
    ("MEN2", "MEN2 MARKETING"),
    ("PUREFOODS", "FOODSPHERE INC"),
    ("PF", "FOODSPHERE INC"),
    ("CDO", "FOODSPHERE INC"),
    ("VIRGINIA", "VIRGINIA FOOD INC"),
    ("MEKENI", "MEKENI FOOD CORP"),
    ("MAMA PINA", "MAMA PINA'S"),
)

# Customer names left out of the stock view's customer pareto
PARETO_EXCLUDED_CUSTOMERS = ("MEN2", "INTERNAL")

# ============================================================
# SENTINEL LABELS
# ============================================================
NO_SUPPLIER = "No Supplier"
UNASSIGNED = "Unassigned"
INTERNAL_OTHERS = "Internal / Others"
UNKNOWN_PRODUCT = "Unknown Product"
UNKNOWN_BRANCH = "Unknown"
UNASSIGNED_SUPPLIER = "UNASSIGNED"

# ============================================================
# OUTPUT LIMITS AND TARGETS
# ============================================================
TOP_N = 10
TOP_N_PAGED = 50
TOP_CUSTOMERS_PERSONAL = 5

DEFAULT_SALESMAN_TARGET = 500000
DEFAULT_EXECUTIVE_TARGET = 1000000
DEFAULT_PERSONAL_TARGET = 300000

# Supervisor view: visits are estimated from order count
VISITS_PER_ORDER = 1.3

# Customer store-name keywords for the coverage chart
COVERAGE_GROUPS = (
    ("Sari-Sari Store", ("SARI", "STORE"), "#3b82f6"),
    ("Restaurant", ("RESTO", "CAFE", "KITCHEN"), "#10b981"),
)
COVERAGE_OTHERS = ("Others", "#f59e0b")

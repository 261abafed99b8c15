"""
Derived KPIs and status buckets.

Every ratio here returns 0 when its denominator is not positive, so a
dashboard over an empty range renders zeros instead of failing.
"""

# ============================================================
# STATUS THRESHOLDS (percent)
# ============================================================

VELOCITY_FAST = 50
VELOCITY_HEALTHY = 20
VELOCITY_SLOW = 5

RETURN_CRITICAL = 5
RETURN_HIGH = 2

# Division stock tile in the stock view: outflow above this reads healthy
DIVISION_OUTFLOW_HEALTHY = 5000

# Manager insight colouring
GROWTH_GOOD = 10
GROWTH_REVIEW = 5
DIVISION_LAG_COACHING = -5
CHURN_FOLLOW_UP = 10

ATTAINMENT_ON_TRACK = 100
ATTAINMENT_AT_RISK = 70

# ============================================================
# RATIOS
# ============================================================

def percent_of(part, whole):
    if whole <= 0:
        return 0.0
    return part / whole * 100


def gross_margin(net_sales, cogs):
    """(netSales - cogs) / netSales * 100, 0 when there are no sales."""
    if net_sales <= 0:
        return 0.0
    return (net_sales - cogs) / net_sales * 100


def collection_rate(collections, net_sales):
    return percent_of(collections, net_sales)


def velocity_rate(outflow, current_stock):
    """Share of the stock moved during the period: outflow / (outflow + stock)."""
    return percent_of(outflow, outflow + current_stock)


def return_rate(bad_stock_inflow, good_stock_outflow):
    return percent_of(bad_stock_inflow, good_stock_outflow)


def growth_rate(current, previous):
    if previous <= 0:
        return 0.0
    return (current - previous) / previous * 100


def target_attainment(sales, target):
    return percent_of(sales, target)


# ============================================================
# STATUS LABELS
# ============================================================

def velocity_status(rate):
    if rate > VELOCITY_FAST:
        return "Fast Moving"
    elif rate > VELOCITY_HEALTHY:
        return "Healthy"
    elif rate > VELOCITY_SLOW:
        return "Slow Moving"
    else:
        return "Stagnant"


def return_status(rate):
    if rate > RETURN_CRITICAL:
        return "Critical"
    elif rate > RETURN_HIGH:
        return "High"
    elif rate > 0:
        return "Normal"
    else:
        return "Excellent"


def division_stock_status(outflow):
    return "Healthy" if outflow > DIVISION_OUTFLOW_HEALTHY else "Warning"


def performance_status(attainment):
    """Target attainment (percent) -> traffic light used by the team views."""
    if attainment >= ATTAINMENT_ON_TRACK:
        return "On Track"
    elif attainment >= ATTAINMENT_AT_RISK:
        return "At Risk"
    else:
        return "Behind"


def insight_status(value):
    """Growth figure -> good / warning / bad."""
    if value >= GROWTH_GOOD:
        return "good"
    elif value >= 0:
        return "warning"
    else:
        return "bad"

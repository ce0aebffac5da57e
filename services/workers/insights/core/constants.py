PHASE_ORDER = [
    "ingest",
    "classify",
    "quality",
    "statistics",
    "patterns",
    "trends",
    "compose",
    "finalize",
]

ANALYSIS_TYPES = (
    "SUMMARY",
    "KPI_EXTRACTION",
    "TREND_ANALYSIS",
    "COMPARISON",
    "FULL_ANALYSIS",
)
DEFAULT_ANALYSIS_TYPE = "FULL_ANALYSIS"

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

_CLASSIFY_SAMPLE_ROWS = 100
_NUMERIC_SHARE_THRESHOLD = 0.8
_CATEGORICAL_MAX_DISTINCT = 20
_CATEGORICAL_DISTINCT_RATIO = 0.8
_DATE_SHARE_THRESHOLD = 0.8

_QUALITY_SAMPLE_ROWS = 1000
_VALIDITY_LONG_VALUE = 1000
_VALIDITY_LONG_PENALTY = 1
_VALIDITY_SENTINEL_PENALTY = 2
_VALIDITY_SENTINELS = ("null", "undefined")

_OUTLIER_MIN_VALUES = 10
_OUTLIER_Z = 3.0
_CORRELATION_MIN_PAIRS = 10
_CORRELATION_THRESHOLD = 0.5
_CORRELATION_LEFT_COLUMNS = 3
_CORRELATION_RIGHT_COLUMNS = 4

_REVENUE_SAMPLE_ROWS = 100

_TREND_POINTS = 12
_TREND_MIN_VALUES = 12
_TREND_MIN_VALID_POINTS = 8
_TREND_FLUCTUATION = 0.2
_TREND_CYCLE_AMPLITUDE = 0.08
_FALLBACK_TREND_RANGE = (50000, 150000)

_TREND_PRIORITY_GROUPS = [
    ["revenue", "sales", "income", "profit", "amount", "charges", "cost", "price", "total"],
    ["tenure", "duration", "time", "period", "months", "days", "years"],
    ["score", "rating", "value", "count", "quantity", "number"],
    ["monthly", "daily", "weekly", "annual"],
]
_TREND_SEGMENT_KEYWORDS = ("tenure", "duration")

_SEASONAL_PATTERNS = {
    "retail": [0.8, 0.85, 0.95, 1.0, 1.05, 1.1, 0.9, 0.85, 1.15, 1.2, 1.4, 1.3],
    "subscription": [0.95, 0.9, 1.0, 1.05, 1.1, 1.15, 1.2, 1.15, 1.1, 1.05, 1.0, 0.95],
    "telecom": [1.1, 1.0, 0.9, 0.95, 1.0, 1.05, 1.1, 1.0, 0.9, 0.95, 1.0, 1.2],
    "gaming": [1.2, 1.0, 0.9, 0.95, 1.1, 1.3, 1.4, 1.2, 1.0, 1.1, 1.15, 1.25],
    "churn": [1.3, 1.2, 0.95, 0.8, 0.75, 0.7, 0.85, 0.8, 0.75, 0.9, 1.0, 1.15],
}

# domain tag -> (baseline override or None, monthly growth, volatility, seasonal pattern)
_SYNTHETIC_TREND_PARAMS = {
    "generic": (None, 0.05, 0.15, "subscription"),
    "churn": (18.0, -0.008, 0.12, "churn"),
    "revenue": (None, 0.08, 0.18, "retail"),
    "telecom": (None, 0.03, 0.10, "telecom"),
    "gaming": (120.0, 0.04, 0.20, "gaming"),
}
_SYNTHETIC_MIN_BASE = 1000.0
_SYNTHETIC_ROW_MULTIPLIER = 5
_TELECOM_DEFAULT_REVENUE = 65.0
_DEFAULT_MONTHLY_REVENUE = 50000.0
_MIN_MONTHLY_REVENUE = 25000.0
_TELECOM_REVENUE_CAP = 100.0
_CHURN_REVENUE_FACTOR = 0.85

REVENUE_KEYWORDS = ("revenue", "charges", "amount", "price", "cost", "total")
CHURN_KEYWORDS = ("churn", "cancel", "retention")
TELECOM_KEYWORDS = ("phone", "internet", "contract", "tenure", "senior", "partner")
GAMING_KEYWORDS = ("gaming", "session", "level", "score", "play", "achievement")

_MAX_KPIS = 6
_MAX_ACTION_ITEMS = 4
_COMPLETENESS_ACTION_THRESHOLD = 80.0
_RANGE_OUTLIER_SHARE = 0.1
_CATEGORY_IMBALANCE_RATIO = 5
_CATEGORY_IMBALANCE_TOP = 5
_SMALL_DATASET_ROWS = 100
_LARGE_DATASET_ROWS = 50000

_MAX_CHART_CATEGORIES = 8
_TREND_CHART_COLOR = "#60B5FF"
_CATEGORY_CHART_COLOR = "#FF9149"

_DATE_RANGE_UNAVAILABLE = "Not available"


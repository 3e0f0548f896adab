# services/query_understanding.py
"""
Turns raw search input into a canonical, hashable SearchFilter.

Normalization never fails: optional fields that are blank or cannot be
parsed are dropped, enums fall back to their defaults and pagination is
clamped into range. Rejecting malformed input is the job of the request
schema, which runs before this.
"""
import hashlib
import json
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, FrozenSet

SORT_OPTIONS = ("relevance", "name", "price", "created_at", "newest")
SORT_DIRECTIONS = ("asc", "desc")

DEFAULT_SORT_BY = "relevance"
DEFAULT_SORT_DIRECTION = "desc"
DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100
MIN_SUGGESTION_LENGTH = 2

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class AttributeFilter:
    """AND across attributes, OR across the value ids of one attribute."""
    attribute_id: int
    value_ids: FrozenSet[int]


@dataclass(frozen=True)
class SearchFilter:
    query: Optional[str] = None
    category_id: Optional[int] = None
    category_slug: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    attribute_filters: Tuple[AttributeFilter, ...] = field(default_factory=tuple)
    in_stock_only: bool = False
    sort_by: str = DEFAULT_SORT_BY
    sort_direction: str = DEFAULT_SORT_DIRECTION
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE

    def canonical(self) -> dict:
        """Deterministic, JSON-safe representation used for hashing."""
        return {
            "q": self.query or "",
            "category_id": self.category_id if self.category_id is not None else "",
            "category_slug": self.category_slug or "",
            "min_price": _format_decimal(self.min_price),
            "max_price": _format_decimal(self.max_price),
            # list order is significant, value order is not
            "attributes": [
                [attr.attribute_id, sorted(attr.value_ids)]
                for attr in self.attribute_filters
            ],
            "in_stock": self.in_stock_only,
            "sort_by": self.sort_by,
            "sort_direction": self.sort_direction,
            "per_page": self.per_page,
            "page": self.page,
        }

    def cache_key(self) -> str:
        key_data = json.dumps(self.canonical(), sort_keys=True, separators=(",", ":"))
        return f"search_results:{hashlib.md5(key_data.encode()).hexdigest()}"

    def applied_filters(self) -> dict:
        """Filters that narrow the result set, for logging and response metadata."""
        applied = {}
        if self.category_id is not None:
            applied["category_id"] = self.category_id
        if self.category_slug:
            applied["category_slug"] = self.category_slug
        if self.min_price is not None:
            applied["min_price"] = _format_decimal(self.min_price)
        if self.max_price is not None:
            applied["max_price"] = _format_decimal(self.max_price)
        if self.attribute_filters:
            applied["attributes"] = [
                {"attribute_id": attr.attribute_id, "value_ids": sorted(attr.value_ids)}
                for attr in self.attribute_filters
            ]
        if self.in_stock_only:
            applied["in_stock"] = True
        return applied


def normalize_term(text: Optional[str]) -> str:
    """Trim and collapse internal whitespace."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", str(text)).strip()


def normalize_filters(raw: Mapping[str, Any]) -> SearchFilter:
    """Build a SearchFilter from request parameters, whatever their order or shape."""
    query = normalize_term(raw.get("q")) or None
    slug = raw.get("category_slug")
    if slug is not None:
        slug = str(slug).strip() or None

    return SearchFilter(
        query=query,
        category_id=_as_positive_int(raw.get("category_id")),
        category_slug=slug,
        min_price=_as_decimal(raw.get("min_price")),
        max_price=_as_decimal(raw.get("max_price")),
        attribute_filters=_as_attribute_filters(raw.get("attributes")),
        in_stock_only=_as_bool(raw.get("in_stock")),
        sort_by=_as_choice(raw.get("sort_by"), SORT_OPTIONS, DEFAULT_SORT_BY),
        sort_direction=_as_choice(raw.get("sort_direction"), SORT_DIRECTIONS, DEFAULT_SORT_DIRECTION),
        page=_clamp(_as_int(raw.get("page")), 1, None, default=1),
        per_page=_clamp(_as_int(raw.get("per_page")), 1, MAX_PER_PAGE, default=DEFAULT_PER_PAGE),
    )


# ---------------- HELPERS ----------------
def _format_decimal(value: Optional[Decimal]) -> str:
    if value is None:
        return ""
    # 10, 10.0 and 10.00 must hash the same
    normalized = value.normalize()
    return format(normalized, "f")


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _as_positive_int(value: Any) -> Optional[int]:
    number = _as_int(value)
    if number is None or number < 1:
        return None
    return number


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_STRINGS


def _as_choice(value: Any, choices: Tuple[str, ...], default: str) -> str:
    if isinstance(value, Enum):
        value = value.value
    if value is None:
        return default
    text = str(value).strip().lower()
    return text if text in choices else default


def _clamp(value: Optional[int], low: int, high: Optional[int], default: int) -> int:
    if value is None:
        return default
    if value < low:
        return low
    if high is not None and value > high:
        return high
    return value


def _as_attribute_filters(raw_attributes: Any) -> Tuple[AttributeFilter, ...]:
    if not raw_attributes or not isinstance(raw_attributes, (list, tuple)):
        return ()

    filters = []
    for entry in raw_attributes:
        if isinstance(entry, Mapping):
            attribute_id = entry.get("attribute_id")
            raw_values = entry.get("value_ids")
        else:
            attribute_id = getattr(entry, "attribute_id", None)
            raw_values = getattr(entry, "value_ids", None)

        attribute_id = _as_positive_int(attribute_id)
        if attribute_id is None or not isinstance(raw_values, (list, tuple, set, frozenset)):
            continue

        value_ids = frozenset(
            value_id for value_id in (_as_positive_int(v) for v in raw_values)
            if value_id is not None
        )
        if not value_ids:
            continue
        filters.append(AttributeFilter(attribute_id=attribute_id, value_ids=value_ids))

    return tuple(filters)

# schemas/search.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Dict, Any
from enum import Enum


class SortOption(str, Enum):
    RELEVANCE = "relevance"
    NAME = "name"
    PRICE = "price"
    CREATED_AT = "created_at"
    NEWEST = "newest"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ---------------- REQUESTS ----------------
class AttributeFilterIn(BaseModel):
    attribute_id: int = Field(..., ge=1)
    value_ids: List[int] = Field(..., min_length=1)

    @field_validator("value_ids")
    @classmethod
    def positive_value_ids(cls, value_ids: List[int]) -> List[int]:
        if any(value_id < 1 for value_id in value_ids):
            raise ValueError("value ids must be positive integers")
        return value_ids


class SearchRequest(BaseModel):
    """Validated search input. min_price > max_price is allowed and simply matches nothing."""
    model_config = ConfigDict(extra="ignore")

    q: Optional[str] = Field(None, max_length=255)
    category_id: Optional[int] = Field(None, ge=1)
    category_slug: Optional[str] = Field(None, max_length=120)
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    attributes: List[AttributeFilterIn] = Field(default_factory=list)
    in_stock: Optional[bool] = None
    sort_by: Optional[SortOption] = None
    sort_direction: Optional[SortDirection] = None
    per_page: int = Field(20, ge=1, le=100)
    page: int = Field(1, ge=1)


# ---------------- RESPONSES ----------------
class ProductSearchRow(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str
    slug: str
    sku: str
    description: Optional[str] = None
    short_description: Optional[str] = None
    price: Decimal
    track_inventory: bool
    created_at: Optional[datetime] = None
    variant_count: int = 0
    min_variant_price: Optional[Decimal] = None
    max_variant_price: Optional[Decimal] = None
    available_variant_count: int = 0


class SearchResultPage(BaseModel):
    data: List[ProductSearchRow] = Field(default_factory=list)
    total: int
    per_page: int
    current_page: int
    last_page: int
    from_: int = Field(0, alias="from")
    to: int = 0

    model_config = ConfigDict(populate_by_name=True)


class PerformanceStats(BaseModel):
    cache_enabled: bool
    cache_ttl: int
    performance_threshold_ms: int
    very_slow_threshold_ms: int
    max_results: int


class SearchMetadata(BaseModel):
    query: str
    result_count: int
    filters_applied: Dict[str, Any]
    sort_by: str
    sort_direction: str
    performance_stats: PerformanceStats


class SearchData(BaseModel):
    products: SearchResultPage
    search_metadata: SearchMetadata


class SearchResponse(BaseModel):
    success: bool = True
    data: SearchData
    message: str = "Search completed successfully"


class SuggestionData(BaseModel):
    query: str
    suggestions: List[str]


class SuggestionResponse(BaseModel):
    success: bool = True
    data: SuggestionData
    message: str = "Suggestions retrieved successfully"

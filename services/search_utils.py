# services/search_utils.py
"""
Query building for catalog search.

``build_query_plan`` turns a SearchFilter into a list of typed predicate
descriptors plus one ordering descriptor, without touching the database.
``compile_query_plan`` is the only place those descriptors become a
SQLAlchemy statement.
"""
from dataclasses import dataclass
from decimal import Decimal
from functools import singledispatch
from typing import FrozenSet, Optional, Tuple

from sqlalchemy import and_, case, distinct, exists, func, or_, select, true, false
from sqlalchemy.sql import Select

from models.Attributes import AttributeValue
from models.Categories import Category
from models.Products import Product, ProductVariant, product_attribute_values, product_categories
from services.query_understanding import SearchFilter

RELEVANCE_NAME = 4
RELEVANCE_SKU = 3
RELEVANCE_DESCRIPTION = 2
RELEVANCE_CATEGORY = 1
RELEVANCE_NONE = 0


# ---------------- DESCRIPTORS ----------------
@dataclass(frozen=True)
class TextMatch:
    term: str


@dataclass(frozen=True)
class CategoryIdMatch:
    category_id: int


@dataclass(frozen=True)
class CategorySlugMatch:
    slug: str


@dataclass(frozen=True)
class MinPrice:
    """Passes when the base price OR any variant price is >= bound."""
    bound: Decimal


@dataclass(frozen=True)
class MaxPrice:
    """Passes when the base price OR any variant price is <= bound."""
    bound: Decimal


@dataclass(frozen=True)
class InStock:
    pass


@dataclass(frozen=True)
class AttributeMatch:
    attribute_id: int
    value_ids: FrozenSet[int]


@dataclass(frozen=True)
class Ordering:
    kind: str  # relevance, created_at, name, price
    direction: str
    term: Optional[str] = None


@dataclass(frozen=True)
class QueryPlan:
    predicates: Tuple[object, ...]
    ordering: Ordering


def build_query_plan(search_filter: SearchFilter) -> QueryPlan:
    predicates = []

    if search_filter.query:
        predicates.append(TextMatch(search_filter.query))

    if search_filter.category_id is not None:
        predicates.append(CategoryIdMatch(search_filter.category_id))

    if search_filter.category_slug:
        predicates.append(CategorySlugMatch(search_filter.category_slug))

    if search_filter.min_price is not None:
        predicates.append(MinPrice(search_filter.min_price))

    if search_filter.max_price is not None:
        predicates.append(MaxPrice(search_filter.max_price))

    if search_filter.in_stock_only:
        predicates.append(InStock())

    for attribute_filter in search_filter.attribute_filters:
        predicates.append(AttributeMatch(attribute_filter.attribute_id, attribute_filter.value_ids))

    return QueryPlan(predicates=tuple(predicates), ordering=_build_ordering(search_filter))


def _build_ordering(search_filter: SearchFilter) -> Ordering:
    sort_by = search_filter.sort_by
    direction = search_filter.sort_direction

    if sort_by == "relevance":
        if search_filter.query:
            return Ordering("relevance", "desc", search_filter.query)
        return Ordering("created_at", "desc")
    if sort_by in ("created_at", "newest"):
        return Ordering("created_at", direction)
    if sort_by == "price":
        return Ordering("price", direction)
    if sort_by == "name":
        return Ordering("name", direction)
    return Ordering("name", "asc")


# ---------------- TRANSLATION ----------------
def _contains(column, term: str):
    return column.icontains(term, autoescape=True)


@singledispatch
def _to_clause(predicate):
    raise TypeError(f"Unsupported search predicate: {predicate!r}")


@_to_clause.register
def _(predicate: TextMatch):
    term = predicate.term
    return or_(
        _contains(Product.name, term),
        _contains(Product.sku, term),
        _contains(ProductVariant.sku, term),
        _contains(Product.description, term),
        _contains(Product.short_description, term),
        _contains(Category.name, term),
    )


@_to_clause.register
def _(predicate: CategoryIdMatch):
    return product_categories.c.category_id == predicate.category_id


@_to_clause.register
def _(predicate: CategorySlugMatch):
    return Category.slug == predicate.slug


@_to_clause.register
def _(predicate: MinPrice):
    return or_(Product.price >= predicate.bound, ProductVariant.price >= predicate.bound)


@_to_clause.register
def _(predicate: MaxPrice):
    return or_(Product.price <= predicate.bound, ProductVariant.price <= predicate.bound)


@_to_clause.register
def _(predicate: InStock):
    stocked_products = (
        select(ProductVariant.product_id)
        .where(ProductVariant.stock_quantity > 0, ProductVariant.is_active == true())
    )
    return or_(
        Product.track_inventory == false(),
        Product.id.in_(stocked_products),
    )


@_to_clause.register
def _(predicate: AttributeMatch):
    return exists(
        select(1)
        .select_from(product_attribute_values)
        .join(AttributeValue, AttributeValue.id == product_attribute_values.c.attribute_value_id)
        .where(
            product_attribute_values.c.product_id == Product.id,
            AttributeValue.attribute_id == predicate.attribute_id,
            product_attribute_values.c.attribute_value_id.in_(sorted(predicate.value_ids)),
        )
    )


def relevance_tier(term: str):
    """CASE expression ranking a joined row by where the term matched."""
    return case(
        (_contains(Product.name, term), RELEVANCE_NAME),
        (or_(_contains(Product.sku, term), _contains(ProductVariant.sku, term)), RELEVANCE_SKU),
        (
            or_(_contains(Product.description, term), _contains(Product.short_description, term)),
            RELEVANCE_DESCRIPTION,
        ),
        (_contains(Category.name, term), RELEVANCE_CATEGORY),
        else_=RELEVANCE_NONE,
    )


def _directed(expression, direction: str):
    return expression.asc() if direction == "asc" else expression.desc()


def _order_by_clauses(ordering: Ordering):
    if ordering.kind == "relevance":
        # max() keeps the grouped query valid; a product ranks by its best joined row
        return [func.max(relevance_tier(ordering.term)).desc(), Product.name.asc(), Product.id.asc()]
    if ordering.kind == "created_at":
        return [_directed(Product.created_at, ordering.direction), Product.id.asc()]
    if ordering.kind == "price":
        price = func.coalesce(func.min(ProductVariant.price), Product.price, 0)
        return [_directed(price, ordering.direction), Product.id.asc()]
    return [_directed(Product.name, ordering.direction), Product.id.asc()]


def base_search_statement() -> Select:
    """Active products joined to their active variants and categories, one row per product."""
    available = case((ProductVariant.stock_quantity > 0, ProductVariant.id), else_=None)

    return (
        select(
            Product.id,
            Product.name,
            Product.slug,
            Product.sku,
            Product.description,
            Product.short_description,
            Product.price,
            Product.track_inventory,
            Product.created_at,
            func.count(distinct(ProductVariant.id)).label("variant_count"),
            func.min(ProductVariant.price).label("min_variant_price"),
            func.max(ProductVariant.price).label("max_variant_price"),
            func.count(distinct(available)).label("available_variant_count"),
        )
        .select_from(Product)
        .outerjoin(
            ProductVariant,
            and_(ProductVariant.product_id == Product.id, ProductVariant.is_active == true()),
        )
        .outerjoin(product_categories, product_categories.c.product_id == Product.id)
        .outerjoin(
            Category,
            and_(Category.id == product_categories.c.category_id, Category.is_active == true()),
        )
        .where(Product.is_active == true())
        .group_by(Product.id)
    )


def compile_query_plan(plan: QueryPlan) -> Select:
    statement = base_search_statement()
    for predicate in plan.predicates:
        statement = statement.where(_to_clause(predicate))
    return statement.order_by(*_order_by_clauses(plan.ordering))

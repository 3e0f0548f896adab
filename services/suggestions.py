# services/suggestions.py
from typing import List

from sqlalchemy import case, select, true
from sqlalchemy.orm import Session

from models.Categories import Category
from models.Products import Product, ProductVariant


def _product_names(db: Session, term: str, limit: int) -> List[str]:
    # names starting with the term rank before names merely containing it
    starts_first = case((Product.name.istartswith(term, autoescape=True), 1), else_=2)
    stmt = (
        select(Product.name)
        .where(Product.is_active == true(), Product.name.icontains(term, autoescape=True))
        .order_by(starts_first, Product.name.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())


def _product_skus(db: Session, term: str, limit: int) -> List[str]:
    stmt = (
        select(Product.sku)
        .where(Product.is_active == true(), Product.sku.icontains(term, autoescape=True))
        .order_by(Product.sku.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())


def _variant_skus(db: Session, term: str, limit: int) -> List[str]:
    stmt = (
        select(ProductVariant.sku)
        .where(ProductVariant.is_active == true(), ProductVariant.sku.icontains(term, autoescape=True))
        .order_by(ProductVariant.sku.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())


def _category_names(db: Session, term: str, limit: int) -> List[str]:
    stmt = (
        select(Category.name)
        .where(Category.is_active == true(), Category.name.icontains(term, autoescape=True))
        .order_by(Category.name.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())


def generate_suggestions(db: Session, term: str, limit: int) -> List[str]:
    """
    Autocomplete candidates in priority order: product names, product SKUs,
    variant SKUs, category names. Exact duplicates keep their first position.
    """
    candidates = (
        _product_names(db, term, limit)
        + _product_skus(db, term, limit)
        + _variant_skus(db, term, limit)
        + _category_names(db, term, limit)
    )
    # dict preserves insertion order
    return list(dict.fromkeys(candidates))[:limit]

from sqlalchemy import (
    Column, Integer, String, Text, ForeignKey, Numeric,
    Boolean, DateTime, Table, Index
)
from sqlalchemy.orm import relationship
from db.database import Base
from datetime import datetime


# Product <-> Category
product_categories = Table(
    "product_categories",
    Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
    Index("idx_product_categories_category", "category_id"),
)

# Product <-> AttributeValue
product_attribute_values = Table(
    "product_attribute_values",
    Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("attribute_value_id", Integer, ForeignKey("attribute_values.id", ondelete="CASCADE"), primary_key=True),
    Index("idx_product_attribute_values_value", "attribute_value_id"),
)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    short_description = Column(String(500), nullable=True)
    sku = Column(String(100), unique=True, nullable=False)

    price = Column(Numeric(10, 2), nullable=False)
    track_inventory = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")
    categories = relationship("Category", secondary=product_categories, back_populates="products")
    attribute_values = relationship("AttributeValue", secondary=product_attribute_values)

    __table_args__ = (
        Index("idx_products_name_search", "name"),
        Index("idx_products_sku", "sku"),
        Index("idx_products_active_created", "is_active", "created_at"),
        Index("idx_products_price_active", "price", "is_active"),
    )


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    sku = Column(String(100), unique=True, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock_quantity = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="variants")

    __table_args__ = (
        Index("idx_variants_product_id", "product_id"),
        Index("idx_variants_sku_search", "sku"),
        Index("idx_variants_price_active", "price", "is_active"),
        Index("idx_variants_stock_active", "stock_quantity", "is_active"),
    )

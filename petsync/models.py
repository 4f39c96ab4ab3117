from datetime import datetime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy import (
    JSON, Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text,
    UniqueConstraint, func,
)

# JSONB в postgres, обычный JSON в sqlite (тесты)
JSONType = JSON().with_variant(JSONB(), "postgresql")
Money = Numeric(10, 2, asdecimal=False)

class Base(DeclarativeBase):
    pass

class ScrapingSource(Base):
    __tablename__ = "scraping_sources"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    base_url: Mapped[str] = mapped_column(String(500))
    scraping_url: Mapped[str] = mapped_column(String(1000))

    # Селекторы хранятся как данные: container/title/price/location/description/link
    selectors: Mapped[dict] = mapped_column(JSONType, default=dict)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    last_scraped: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)

class Listing(Base):
    """Объявление (ad). source_url - естественный ключ для дедупликации"""
    __tablename__ = "ads"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # None = "цена по запросу", а не бесплатно
    price: Mapped[float | None] = mapped_column(Money, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="EUR")
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    images: Mapped[list] = mapped_column(JSONType, default=list)

    category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id"), nullable=True, index=True)
    breed: Mapped[str | None] = mapped_column(String(100), nullable=True)
    age: Mapped[str | None] = mapped_column(String(50), nullable=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)

    source_name: Mapped[str] = mapped_column(String(200))
    source_url: Mapped[str] = mapped_column(String(1000), unique=True, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    scraped_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        server_default=func.now()
    )

class AffiliateNetwork(Base):
    __tablename__ = "affiliate_networks"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    affiliate_id: Mapped[str] = mapped_column(String(200))
    commission_rate: Mapped[float] = mapped_column(Money, default=5)
    update_frequency_hours: Mapped[int] = mapped_column(Integer, default=24)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # Типизированная конфигурация сети, см. petsync.services.catalogs.NetworkSettings
    settings: Mapped[dict] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    products: Mapped[list["AffiliateProduct"]] = relationship(back_populates="network")

class AffiliateProduct(Base):
    __tablename__ = "affiliate_products"
    __table_args__ = (UniqueConstraint("network_id", "external_product_id"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    network_id: Mapped[int] = mapped_column(ForeignKey("affiliate_networks.id"), index=True)
    external_product_id: Mapped[str] = mapped_column(String(100))

    title: Mapped[str] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    short_description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    price: Mapped[float | None] = mapped_column(Money, nullable=True)
    original_price: Mapped[float | None] = mapped_column(Money, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="EUR")
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    subcategory: Mapped[str | None] = mapped_column(String(100), nullable=True)
    brand: Mapped[str | None] = mapped_column(String(200), nullable=True)
    rating: Mapped[float | None] = mapped_column(Numeric(3, 2, asdecimal=False), nullable=True)
    review_count: Mapped[int] = mapped_column(Integer, default=0)

    affiliate_link: Mapped[str] = mapped_column(String(1000))
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    availability_status: Mapped[str] = mapped_column(String(50), default="in_stock")

    seo_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    seo_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list] = mapped_column(JSONType, default=list)

    last_price_check: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    network: Mapped[AffiliateNetwork] = relationship(back_populates="products")

class AffiliatePriceHistory(Base):
    """Append-only: строки никогда не обновляются"""
    __tablename__ = "affiliate_price_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("affiliate_products.id"), index=True)
    price: Mapped[float] = mapped_column(Money)
    original_price: Mapped[float | None] = mapped_column(Money, nullable=True)
    availability_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

class AffiliateContent(Base):
    __tablename__ = "affiliate_content"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Не больше одного материала на товар
    product_id: Mapped[int] = mapped_column(ForeignKey("affiliate_products.id"), unique=True)
    content_type: Mapped[str] = mapped_column(String(50), default="review")
    title: Mapped[str] = mapped_column(String(500))
    slug: Mapped[str] = mapped_column(String(500), unique=True, index=True)
    content: Mapped[str] = mapped_column(Text)
    excerpt: Mapped[str | None] = mapped_column(Text, nullable=True)
    seo_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    seo_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list] = mapped_column(JSONType, default=list)

    # generated | templated
    source: Mapped[str] = mapped_column(String(20), default="generated")
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    publish_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    product: Mapped[AffiliateProduct] = relationship()

class AutomationLog(Base):
    __tablename__ = "automation_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    task_type: Mapped[str] = mapped_column(String(100), index=True)

    # success | partial_success | error
    status: Mapped[str] = mapped_column(String(30))
    details: Mapped[dict] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

"""
Каталоги партнерских сетей и типизированные настройки сети.

Настройки сети (AffiliateNetwork.settings) валидируются при чтении в один из
вариантов по полю network_type: amazon / aliexpress / generic.
"""
from typing import Annotated, Literal, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

SETTINGS_SCHEMA_VERSION = 1
AMAZON_CATALOG_VERSION = "2025.1"

class CatalogProduct(BaseModel):
    external_product_id: str
    title: str
    description: str | None = None
    short_description: str | None = None
    price: float | None = None
    original_price: float | None = None
    currency: str = "EUR"
    image_url: str | None = None
    category: str = "general"
    subcategory: str = "general"
    brand: str = "Various"
    rating: float | None = None
    review_count: int = 0
    # Готовая ссылка от партнера (AliExpress promotion_link); иначе собирается из base_url
    affiliate_link: str | None = None

class AmazonSettings(BaseModel):
    network_type: Literal["amazon"] = "amazon"
    schema_version: int = SETTINGS_SCHEMA_VERSION
    catalog_version: str = AMAZON_CATALOG_VERSION
    base_url: str = "https://www.amazon.com/dp"

class AliExpressSettings(BaseModel):
    network_type: Literal["aliexpress"] = "aliexpress"
    schema_version: int = SETTINGS_SCHEMA_VERSION
    max_products_per_sync: int = Field(20, ge=1, le=50)
    target_categories: list[str] = ["pet supplies"]

class GenericSettings(BaseModel):
    network_type: Literal["generic"] = "generic"
    schema_version: int = SETTINGS_SCHEMA_VERSION
    source_url: str | None = None
    added_manually: bool = False
    added_at: str | None = None
    products: list[CatalogProduct] = []

    @property
    def base_url(self) -> str | None:
        return self.source_url.rstrip("/") if self.source_url else None

NetworkSettings = Annotated[
    Union[AmazonSettings, AliExpressSettings, GenericSettings],
    Field(discriminator="network_type"),
]
_settings_adapter = TypeAdapter(NetworkSettings)

class NetworkSettingsError(Exception):
    pass

def infer_network_type(name: str, source_url: str | None = None) -> str:
    """Старые записи без network_type: определяем по имени сети или домену"""
    host = (urlparse(source_url).hostname or "") if source_url else ""
    haystack = f"{name} {host}".lower()
    if "amazon" in haystack:
        return "amazon"
    if "aliexpress" in haystack:
        return "aliexpress"
    return "generic"

def parse_network_settings(network) -> AmazonSettings | AliExpressSettings | GenericSettings:
    data = dict(network.settings or {})
    data.setdefault("network_type", infer_network_type(network.name, data.get("source_url")))
    try:
        return _settings_adapter.validate_python(data)
    except ValidationError as e:
        raise NetworkSettingsError(f"Invalid settings for network {network.name!r}: {e}") from e

# Фиксированный каталог Amazon (пока нет живого Product Advertising API)
AMAZON_CATALOG = (
    CatalogProduct(
        external_product_id="B07XLBQZPX",
        title="YETI Boomer 8 Dog Bowl, Stainless Steel, Non-Slip",
        description="Double-wall vacuum insulation keeps water cold. 18/8 stainless steel construction is puncture and rust resistant. Non-slip ring on the bottom.",
        short_description="YETI insulated stainless steel dog bowl",
        price=49.99,
        image_url="https://m.media-amazon.com/images/I/71QHvzKzP6L._AC_SL1500_.jpg",
        category="feeding", subcategory="bowls", brand="YETI",
        rating=4.6, review_count=8547,
    ),
    CatalogProduct(
        external_product_id="B0002DJX44",
        title="KONG Classic Dog Toy, Large",
        description="Made in USA. Veterinarian recommended. Stuff with treats to create an interactive experience. Durable natural rubber formula.",
        short_description="KONG Classic durable rubber dog toy",
        price=13.99, original_price=16.99,
        image_url="https://m.media-amazon.com/images/I/61pHAId8bNL._AC_SL1500_.jpg",
        category="toys", subcategory="chew-toys", brand="KONG",
        rating=4.5, review_count=76543,
    ),
    CatalogProduct(
        external_product_id="B07H8NQZPX",
        title="Purina Pro Plan High Protein Dry Dog Food, Chicken & Rice",
        description="Real chicken is the #1 ingredient. High protein formula to meet the needs of highly active dogs. Fortified with guaranteed live probiotics.",
        short_description="Purina Pro Plan high protein chicken & rice dog food",
        price=64.98, original_price=79.99,
        image_url="https://m.media-amazon.com/images/I/81VStl+XUBL._AC_SL1500_.jpg",
        category="food", subcategory="dry-food", brand="Purina Pro Plan",
        rating=4.4, review_count=12876,
    ),
    CatalogProduct(
        external_product_id="B08VDC6GCX",
        title="Frisco Multi-Cat Clumping Cat Litter, Unscented, 40-lb",
        description="Multi-cat strength clumping litter. 99% dust free. Low tracking formula. Unscented for sensitive cats.",
        short_description="Frisco multi-cat clumping unscented cat litter",
        price=18.99, original_price=24.99,
        image_url="https://m.media-amazon.com/images/I/81j0VWqGjcL._AC_SL1500_.jpg",
        category="hygiene", subcategory="litter", brand="Frisco",
        rating=4.3, review_count=9234,
    ),
    CatalogProduct(
        external_product_id="B07MQVGQQ8",
        title="Wellness CORE Grain-Free Dry Cat Food, Turkey & Chicken",
        description="Grain-free recipe with deboned turkey and chicken meal. High protein to support lean body mass. No meat by-products.",
        short_description="Wellness CORE grain-free turkey & chicken cat food",
        price=46.99,
        image_url="https://m.media-amazon.com/images/I/81YcQG-+AQL._AC_SL1500_.jpg",
        category="food", subcategory="dry-food", brand="Wellness",
        rating=4.4, review_count=5672,
    ),
    CatalogProduct(
        external_product_id="B089SR47PH",
        title="ChucKit! Ultra Ball Dog Toy, Large, 2-Pack",
        description="Bounces higher and flies farther. Made of high-quality rubber. Compatible with ChuckIt! launchers. Easy to clean.",
        short_description="ChuckIt Ultra Ball high-bounce dog toy 2-pack",
        price=12.99,
        image_url="https://m.media-amazon.com/images/I/71ZHGZ8ZbNL._AC_SL1500_.jpg",
        category="toys", subcategory="balls", brand="ChuckIt!",
        rating=4.6, review_count=15432,
    ),
)

CATALOGS = {
    AMAZON_CATALOG_VERSION: AMAZON_CATALOG,
}

def amazon_catalog(version: str) -> tuple[CatalogProduct, ...]:
    try:
        return CATALOGS[version]
    except KeyError:
        raise NetworkSettingsError(f"Unknown Amazon catalog version {version!r}") from None

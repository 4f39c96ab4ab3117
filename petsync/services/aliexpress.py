import hashlib
from datetime import datetime, timedelta, timezone

from curl_cffi.requests import AsyncSession
from loguru import logger

from petsync.config import settings
from petsync.services.catalogs import CatalogProduct

API_URL = "https://gw.api.taobao.com/router/rest"
QUERY_METHOD = "aliexpress.affiliate.product.query"
FIELDS = (
    "product_id,product_title,product_main_image_url,app_sale_price,app_sale_price_currency,"
    "original_price,discount,evaluate_rate,volume,product_detail_url,commission_rate"
)

def sign_params(params: dict, secret: str) -> str:
    """MD5(secret + k1v1k2v2... + secret) по отсортированным ключам, в верхнем регистре"""
    payload = "".join(f"{key}{params[key]}" for key in sorted(params) if key != "sign")
    return hashlib.md5(f"{secret}{payload}{secret}".encode("utf-8")).hexdigest().upper()

def _shanghai_timestamp() -> str:
    return (datetime.now(timezone.utc) + timedelta(hours=8)).strftime("%Y-%m-%d %H:%M:%S")

def _number(value) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(str(value).rstrip("%"))
    except ValueError:
        return None

def _stars(value) -> float | None:
    """evaluate_rate приходит в процентах положительных отзывов: 97% -> 4.85 из 5"""
    rate = _number(value)
    if rate is None:
        return None
    return round(rate / 20, 2) if rate > 5 else rate

def to_catalog_product(product: dict) -> CatalogProduct:
    title = product.get("product_title") or "AliExpress Product"
    category = (product.get("first_level_category_name") or "general").lower()
    price = _number(product.get("target_sale_price") or product.get("app_sale_price") or product.get("sale_price"))
    return CatalogProduct(
        external_product_id=str(product["product_id"]),
        title=title,
        description=f"High-quality {category} product from AliExpress. {title}",
        short_description=title[:150],
        price=price or 0.0,
        original_price=_number(product.get("target_original_price") or product.get("original_price")),
        currency=product.get("target_sale_price_currency") or product.get("app_sale_price_currency") or "EUR",
        image_url=product.get("product_main_image_url"),
        category="pet supplies",
        subcategory=category,
        brand="AliExpress",
        rating=_stars(product.get("evaluate_rate")),
        review_count=int(product.get("lastest_volume") or product.get("volume") or 0),
        affiliate_link=product.get("promotion_link") or product.get("product_detail_url"),
    )

class AliExpressClient:
    def __init__(self, app_key: str | None = None, secret: str | None = None, session: AsyncSession | None = None):
        self.app_key = app_key or settings.ALIEXPRESS_APP_KEY
        self.secret = secret or settings.ALIEXPRESS_SECRET
        self.session = session or AsyncSession(timeout=settings.FETCH_TIMEOUT)

    @property
    def configured(self) -> bool:
        return bool(self.app_key and self.secret)

    async def close(self):
        await self.session.close()

    async def search(self, keywords: str, tracking_id: str, page_no: int = 1, page_size: int = 20,
                     sort: str = "VOLUME_DESC", category: str | None = None,
                     min_price: float | None = None, max_price: float | None = None) -> list[dict]:
        """Сырые товары из affiliate.product.query. Ошибка API -> RuntimeError"""
        params = {
            "method": QUERY_METHOD,
            "app_key": self.app_key,
            "sign_method": "md5",
            "timestamp": _shanghai_timestamp(),
            "format": "json",
            "v": "2.0",
            "keywords": keywords,
            "page_no": str(page_no),
            "page_size": str(min(page_size, 50)),
            "sort": sort,
            "tracking_id": tracking_id,
            "fields": FIELDS,
        }
        if category:
            params["category_ids"] = category
        if min_price:
            params["min_sale_price"] = str(min_price)
        if max_price:
            params["max_sale_price"] = str(max_price)
        params["sign"] = sign_params(params, self.secret)

        response = await self.session.post(API_URL, data=params)
        if not 200 <= response.status_code < 300:
            raise RuntimeError(f"AliExpress API error: HTTP {response.status_code}")

        data = response.json()
        if "error_response" in data:
            raise RuntimeError(f"AliExpress API error: {data['error_response'].get('msg')}")

        result = (
            data.get("aliexpress_affiliate_product_query_response", {})
            .get("resp_result", {})
            .get("result", {})
        )
        products = (result.get("products") or {}).get("product") or []
        logger.info(f"AliExpress returned {len(products)} products for {keywords!r}")
        return products

    async def fetch_catalog(self, network, network_settings) -> list[CatalogProduct]:
        if not self.configured:
            logger.error("AliExpress API credentials not configured")
            return []

        catalog = []
        for keywords in network_settings.target_categories:
            try:
                raw = await self.search(keywords, tracking_id=network.affiliate_id,
                                        page_size=network_settings.max_products_per_sync)
            except Exception as e:
                logger.error(f"Error fetching AliExpress products for {keywords!r}: {e}")
                continue
            for product in raw:
                try:
                    catalog.append(to_catalog_product(product))
                except Exception as e:
                    logger.error(f"Skipping malformed AliExpress product: {e}")
        return catalog

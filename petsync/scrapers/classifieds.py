import hashlib
import re
from dataclasses import dataclass, field
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from petsync.config import settings
from petsync.scrapers.base import BaseScraper

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 500

DEFAULT_SELECTORS = {
    "container": ".announcement-container, .listing, .item",
    "title": ".title, h2, h3",
    "price": ".price",
    "location": ".location",
    "description": ".description, p",
    "link": "a",
}

# Первое число вида 1,234.56 / 1.234,56 / 850; разделители групп выкидываем
PRICE_RE = re.compile(r"(?P<whole>\d+(?:[.,]\d{3})*)(?P<cents>[.,]\d{2})?")
LOCATION_JUNK_RE = re.compile(r"[^\w\s,.-]")

@dataclass
class ExtractedFields:
    title: str | None = None
    price: float | None = None
    location: str | None = None
    description: str | None = None
    link: str | None = None
    images: list[str] = field(default_factory=list)

def parse_price(text: str | None) -> float | None:
    """'€1,234.56' -> 1234.56; текст без цифр -> None (не 0)"""
    if not text:
        return None
    match = PRICE_RE.search(text)
    if not match:
        return None
    whole = re.sub(r"[.,]", "", match.group("whole"))
    cents = match.group("cents")
    return float(f"{whole}.{cents[1:]}" if cents else whole)

def _text(node: Tag, selector: str) -> str | None:
    el = node.select_one(selector)
    if not el:
        return None
    text = el.get_text(" ", strip=True)
    return text or None

def _absolute(href: str, base_url: str) -> str:
    if href.startswith("//"):
        return "https:" + href
    if href.startswith("http"):
        return href
    return urljoin(base_url.rstrip("/") + "/", href)

def fallback_url(base_url: str, title: str) -> str:
    """Детерминированный URL для карточки без ссылки - чтобы повторный прогон не плодил дубли"""
    digest = hashlib.sha1(title.lower().encode("utf-8")).hexdigest()[:12]
    return f"{base_url.rstrip('/')}/pet-{digest}"

class ClassifiedsScraper(BaseScraper):
    """Разбор HTML доски объявлений по селекторам, которые хранятся у источника"""

    def __init__(self, max_listings: int | None = None, **kwargs):
        super().__init__(**kwargs)
        self.max_listings = max_listings or settings.SCRAPE_MAX_LISTINGS

    @staticmethod
    def selectors_for(source) -> dict:
        selectors = dict(DEFAULT_SELECTORS)
        selectors.update({k: v for k, v in (source.selectors or {}).items() if v})
        return selectors

    def parse_listings(self, html: str, source) -> list[tuple[ExtractedFields | None, str | None]]:
        selectors = self.selectors_for(source)
        soup = BeautifulSoup(html, "html.parser")
        containers = soup.select(selectors["container"])[:self.max_listings]
        return [self.extract(node, selectors, source.base_url) for node in containers]

    def extract(self, node: Tag, selectors: dict, base_url: str) -> tuple[ExtractedFields | None, str | None]:
        """
        Возвращает (поля, ошибка). Никогда не бросает исключение -
        упавшая карточка пропускается, ошибку фиксирует вызывающий код.
        """
        try:
            title = _text(node, selectors["title"])

            price = parse_price(_text(node, selectors["price"]))

            location = _text(node, selectors["location"])
            location = LOCATION_JUNK_RE.sub("", location).strip() if location else ""
            location = location or settings.DEFAULT_LOCATION

            description = _text(node, selectors["description"]) or title

            link = None
            link_el = node.select_one(selectors["link"])
            if link_el and link_el.has_attr("href"):
                link = _absolute(link_el["href"].strip(), base_url)
            if not link and title:
                link = fallback_url(base_url, title)

            images = []
            for img in node.select("img"):
                src = img.get("data-src") or img.get("src")
                if src and not src.startswith("data:"):
                    images.append(_absolute(src.strip(), base_url))
            images = list(dict.fromkeys(images))

            return ExtractedFields(
                title=title[:TITLE_MAX_LENGTH] if title else None,
                price=price,
                location=location,
                description=description[:DESCRIPTION_MAX_LENGTH] if description else None,
                link=link,
                images=images,
            ), None
        except Exception as e:
            return None, f"{type(e).__name__}: {e}"

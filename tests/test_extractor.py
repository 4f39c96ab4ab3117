from unittest.mock import MagicMock

from bs4 import BeautifulSoup

from petsync.scrapers.classifieds import (
    DEFAULT_SELECTORS, ClassifiedsScraper, fallback_url, parse_price,
)


def node(html):
    return BeautifulSoup(html, "html.parser").div


def make_scraper(**kwargs):
    return ClassifiedsScraper(session=MagicMock(), **kwargs)


class TestParsePrice:

    def test_grouped_price_with_cents(self):
        assert parse_price("€1,234.56") == 1234.56

    def test_european_grouping(self):
        assert parse_price("1.234,56 EUR") == 1234.56

    def test_plain_integer(self):
        assert parse_price("Price: 850") == 850.0

    def test_decimal_comma(self):
        assert parse_price("€ 12,50") == 12.5

    def test_no_digits_is_none_not_zero(self):
        assert parse_price("Contact for price") is None
        assert parse_price("") is None
        assert parse_price(None) is None

    def test_first_number_wins(self):
        assert parse_price("300 or best offer, was 450") == 300.0


class TestExtract:

    def setup_method(self):
        self.scraper = make_scraper()
        self.selectors = dict(DEFAULT_SELECTORS)

    def test_extracts_all_fields(self):
        fields, error = self.scraper.extract(node("""
            <div class="listing">
                <h3 class="title">Maltese puppy looking for a home</h3>
                <span class="price">€800</span>
                <span class="location">Nicosia ★</span>
                <div class="description">Vaccinated and microchipped</div>
                <a href="/ad/55">open</a>
                <img src="//cdn.example.com/1.jpg"><img src="/img/2.jpg">
            </div>"""), self.selectors, "https://example.com")

        assert error is None
        assert fields.title == "Maltese puppy looking for a home"
        assert fields.price == 800.0
        assert fields.location == "Nicosia"
        assert fields.description == "Vaccinated and microchipped"
        assert fields.link == "https://example.com/ad/55"
        assert fields.images == ["https://cdn.example.com/1.jpg", "https://example.com/img/2.jpg"]

    def test_missing_fields_get_defaults(self):
        fields, error = self.scraper.extract(
            node('<div><h2>Budgie pair with cage</h2></div>'), self.selectors, "https://example.com/"
        )

        assert error is None
        assert fields.price is None
        assert fields.location == "Cyprus"
        assert fields.description == "Budgie pair with cage"
        assert fields.link == fallback_url("https://example.com/", "Budgie pair with cage")

    def test_fallback_url_is_deterministic(self):
        assert fallback_url("https://example.com", "Kitten") == fallback_url("https://example.com/", "kitten")
        assert fallback_url("https://example.com", "Kitten") != fallback_url("https://example.com", "Puppy")

    def test_title_and_description_are_truncated(self):
        fields, _ = self.scraper.extract(node(
            f'<div><h3 class="title">{"a" * 300}</h3><p class="description">{"b" * 900}</p></div>'
        ), self.selectors, "https://example.com")

        assert len(fields.title) == 200
        assert len(fields.description) == 500

    def test_no_title(self):
        fields, error = self.scraper.extract(node('<div><span class="price">10</span></div>'),
                                             self.selectors, "https://example.com")
        assert error is None
        assert fields.title is None

    def test_failure_is_returned_not_raised(self):
        selectors = {**self.selectors, "title": "[[["}
        fields, error = self.scraper.extract(node('<div><h3>Dog</h3></div>'), selectors, "https://example.com")

        assert fields is None
        assert error


class TestParseListings:

    def test_source_selectors_override_defaults(self):
        source = MagicMock(selectors={"container": ".ad", "title": ".name", "price": ""},
                           base_url="https://example.com")
        selectors = ClassifiedsScraper.selectors_for(source)

        assert selectors["container"] == ".ad"
        assert selectors["title"] == ".name"
        assert selectors["price"] == DEFAULT_SELECTORS["price"]

    def test_caps_number_of_containers(self):
        html = "".join(f'<div class="ad"><h3>Kitten number {i}</h3></div>' for i in range(10))
        source = MagicMock(selectors={"container": ".ad"}, base_url="https://example.com")

        parsed = make_scraper(max_listings=4).parse_listings(html, source)

        assert len(parsed) == 4
        assert [f.title for f, _ in parsed] == [f"Kitten number {i}" for i in range(4)]

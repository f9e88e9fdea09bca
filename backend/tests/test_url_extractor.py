import pytest

from domain.errors import TransientNetworkError
from domain.models import Coordinates, ResultType
from services.page_fetcher import FetchedPage
from services.url_extractor import (
    HTML_COORDINATE_PATTERNS,
    UrlLocationExtractor,
    match_html_title,
    parse_link,
    split_trailing_location,
)


def _page(url, html="", final_url=None):
    return FetchedPage(url=url, final_url=final_url or url, html=html)


@pytest.fixture
def extractor():
    return UrlLocationExtractor(default_region="Singapore")


def test_at_path_coordinates(extractor):
    result = extractor.extract("https://www.google.com/maps/place/Foo/@1.3,103.8,17z")
    assert result.type is ResultType.COORDINATES
    assert result.data == Coordinates(1.3, 103.8)


def test_ll_param_coordinates(extractor):
    result = extractor.extract("https://maps.google.com/?ll=1.2834,103.8607&z=16")
    assert result.data == Coordinates(1.2834, 103.8607)


def test_data_marker_in_path(extractor):
    url = "https://www.google.com/maps/place/Foo/data=!4m6!3m5!1s0x0:0x0!8m2!3d1.3521!4d103.8198"
    result = extractor.extract(url)
    assert result.type is ResultType.COORDINATES
    assert result.data == Coordinates(1.3521, 103.8198)


def test_q_param_is_an_address(extractor):
    result = extractor.extract("https://maps.google.com/?q=1+Raffles+Place")
    assert result.type is ResultType.ADDRESS
    assert result.data == "1 Raffles Place"


def test_out_of_bbox_coordinates_fall_through_to_place_name(extractor):
    result = extractor.extract("https://www.google.com/maps/place/Joe%27s+Pizza/@40.73,-73.99,17z")
    assert result.type is ResultType.ADDRESS
    assert result.data == "Joe's Pizza, Singapore"


def test_place_name_with_trailing_location(extractor):
    result = extractor.extract("https://www.google.com/maps/place/Hawker+Stall+%7C+Tiong+Bahru/")
    assert result.type is ResultType.ADDRESS
    assert result.data == "Tiong Bahru"


@pytest.mark.parametrize("url", [None, "", "   ", "not a url", "maps.google.com/place/Foo"])
def test_malformed_input_returns_none(extractor, url):
    assert extractor.extract(url) is None


def test_no_match_without_fetcher_returns_none(extractor):
    assert extractor.extract("https://maps.app.goo.gl/abc123") is None


def test_redirect_url_coordinates():
    short = "https://maps.app.goo.gl/abc123"

    def fetcher(url):
        return _page(url, final_url="https://www.google.com/maps/place/Foo/@1.29,103.85,17z")

    result = UrlLocationExtractor(fetcher=fetcher).extract(short)
    assert result.data == Coordinates(1.29, 103.85)


def test_html_coordinates_when_redirect_has_none():
    def fetcher(url):
        return _page(url, html='<script>var x = {"lat": 1.31, "lng": 103.9};</script>')

    result = UrlLocationExtractor(fetcher=fetcher).extract("https://maps.app.goo.gl/xyz")
    assert result.type is ResultType.COORDINATES
    assert result.data == Coordinates(1.31, 103.9)


def test_html_title_is_last_resort():
    def fetcher(url):
        return _page(url, html="<html><title>Lau Pa Sat - Google Maps</title></html>")

    result = UrlLocationExtractor(fetcher=fetcher, default_region="Singapore").extract(
        "https://maps.app.goo.gl/xyz"
    )
    assert result.type is ResultType.ADDRESS
    assert result.data == "Lau Pa Sat, Singapore"


def test_page_is_fetched_once():
    calls = []

    def fetcher(url):
        calls.append(url)
        return _page(url, html="<html>nothing here</html>")

    assert UrlLocationExtractor(fetcher=fetcher).extract("https://maps.app.goo.gl/xyz") is None
    assert calls == ["https://maps.app.goo.gl/xyz"]


def test_fetch_error_is_not_raised():
    def fetcher(url):
        raise TransientNetworkError("boom", status_code=503)

    result = UrlLocationExtractor(fetcher=fetcher, default_region="Singapore").extract(
        "https://www.google.com/maps/place/Maxwell+Food+Centre/"
    )
    assert result.data == "Maxwell Food Centre, Singapore"


def test_url_matchers_run_before_fetch():
    def fetcher(url):
        raise AssertionError("page should not be fetched")

    result = UrlLocationExtractor(fetcher=fetcher).extract("https://maps.google.com/?ll=1.3,103.8")
    assert result.data == Coordinates(1.3, 103.8)


def test_split_trailing_location():
    assert split_trailing_location("Chicken Rice — Maxwell") == "Maxwell"
    assert split_trailing_location("Chicken Rice in Tanjong Pagar") == "Tanjong Pagar"
    assert split_trailing_location("Chicken Rice") is None


def test_match_html_title_ignores_bare_site_title():
    assert match_html_title("<title>Google Maps</title>") is None
    assert match_html_title("<title>Tian Tian &amp; Co - Google Maps</title>") == "Tian Tian & Co"


def test_parse_link_requires_scheme_and_host():
    assert parse_link("https://maps.google.com/?q=x").param("q") == "x"
    assert parse_link("/maps/place/x") is None


def test_encoded_q_param(extractor):
    result = extractor.extract("https://www.google.com/maps?q=Some%20Cafe")
    assert result.to_dict() == {"type": "address", "data": "Some Cafe"}


@pytest.mark.parametrize(
    "pattern,html,expected",
    [
        ("json_center", '{"center": [1.30, 103.80]}', (1.30, 103.80)),
        ("json_lat_lng", '{"lat": 1.31, "lng": 103.9}', (1.31, 103.9)),
        ("data_attributes", '<div class="pin" data-lat="1.32" data-lng="103.91"></div>', (1.32, 103.91)),
        ("app_initialization_state", "window.APP_INITIALIZATION_STATE=[[[1.33,103.92]]];", (1.33, 103.92)),
        ("data_marker", "/maps/place/Foo/data=!4m2!3d1.34!4d103.93", (1.34, 103.93)),
        ("script_array_zoom", "<script>var c = [1.35, 103.94]; var zoom = 15;</script>", (1.35, 103.94)),
        ("quoted_at_zoom", '<a href="x" data-v="@1.36,103.95,17z"></a>', (1.36, 103.95)),
        ("meta_geo_position", '<meta name="geo.position" content="1.37;103.96">', (1.37, 103.96)),
        (
            "json_ld_geo",
            '{"@type":"Restaurant","geo":{"@type":"GeoCoordinates","latitude":1.3,"longitude":103.8}}',
            (1.3, 103.8),
        ),
        (
            "microdata",
            '<span itemprop="geo"><meta itemprop="latitude" content="1.38">\n'
            '<meta itemprop="longitude" content="103.97"></span>',
            (1.38, 103.97),
        ),
    ],
)
def test_html_coordinate_patterns(pattern, html, expected):
    assert dict(HTML_COORDINATE_PATTERNS)[pattern].search(html)

    def fetcher(url):
        return _page(url, html=html)

    result = UrlLocationExtractor(fetcher=fetcher).extract("https://maps.app.goo.gl/xyz")
    assert result.type is ResultType.COORDINATES
    assert result.data == Coordinates(*expected)


def test_out_of_region_html_match_falls_through_to_next_pattern():
    html = '{"center": [40.73, -73.99]} <div data-lat="1.32" data-lng="103.91"></div>'

    def fetcher(url):
        return _page(url, html=html)

    result = UrlLocationExtractor(fetcher=fetcher).extract("https://maps.app.goo.gl/xyz")
    assert result.data == Coordinates(1.32, 103.91)

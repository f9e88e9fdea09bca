from unittest.mock import MagicMock, patch

import pytest
import requests

from domain.errors import TransientNetworkError
from services import page_fetcher as pf


@patch("services.page_fetcher._session.get")
def test_fetch_page_follows_redirects(mock_get):
    mock_resp = MagicMock()
    mock_resp.raise_for_status.return_value = None
    mock_resp.url = "https://www.google.com/maps/place/Foo/@1.3,103.8,17z"
    mock_resp.text = "<html></html>"
    mock_get.return_value = mock_resp

    page = pf.fetch_page("https://maps.app.goo.gl/xyz")

    assert page.final_url == "https://www.google.com/maps/place/Foo/@1.3,103.8,17z"
    assert page.length == len("<html></html>")
    assert mock_get.call_args.kwargs["allow_redirects"] is True


@patch("services.page_fetcher._session.get")
def test_fetch_page_error_keeps_status(mock_get):
    response = MagicMock(status_code=429)
    mock_resp = MagicMock()
    mock_resp.raise_for_status.side_effect = requests.HTTPError("429", response=response)
    mock_get.return_value = mock_resp

    with pytest.raises(TransientNetworkError) as excinfo:
        pf.fetch_page("https://maps.app.goo.gl/xyz")
    assert excinfo.value.status_code == 429


@patch("services.page_fetcher._session.get")
def test_proxy_fetcher_reads_json_envelope(mock_get):
    mock_resp = MagicMock()
    mock_resp.raise_for_status.return_value = None
    mock_resp.json.return_value = {"success": True, "html": "<p>x</p>", "final_url": "https://final"}
    mock_get.return_value = mock_resp

    page = pf.make_proxy_fetcher("http://localhost:8000/api/")("https://maps.app.goo.gl/xyz")

    assert page.html == "<p>x</p>"
    assert page.final_url == "https://final"
    assert mock_get.call_args.args[0] == "http://localhost:8000/api/proxy/google-maps"
    assert mock_get.call_args.kwargs["params"] == {"url": "https://maps.app.goo.gl/xyz"}


@patch("services.page_fetcher._session.get")
def test_proxy_fetcher_unsuccessful_envelope(mock_get):
    mock_resp = MagicMock()
    mock_resp.raise_for_status.return_value = None
    mock_resp.json.return_value = {"success": False, "error": "blocked"}
    mock_get.return_value = mock_resp

    with pytest.raises(TransientNetworkError):
        pf.make_proxy_fetcher("http://localhost:8000/api")("https://maps.app.goo.gl/xyz")


def test_default_fetcher_follows_settings(monkeypatch):
    monkeypatch.setattr(pf.settings, "PAGE_FETCH_ENABLED", False)
    assert pf.get_default_page_fetcher() is None

    monkeypatch.setattr(pf.settings, "PAGE_FETCH_ENABLED", True)
    monkeypatch.setattr(pf.settings, "PAGE_PROXY_URL", None)
    assert pf.get_default_page_fetcher() is pf.fetch_page

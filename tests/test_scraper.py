import json

import pytest
import requests

from ct_stock_monitor import scraper
from ct_stock_monitor.scraper import (StockCheckError, StoreStock,
                                      build_availability_url, check_stock)
from ct_stock_monitor.utils import get_http_session

from conftest import FakeResponse, FakeSession

URL = "https://stocktrack.ca/ct/availability.php?store=0459,0150&sku=1502321&src=upc"

RECORDS = [
    {
        "Store": "0459",
        "SKU": "1502321",
        "Quantity": 3,
        "Description": "Widget",
        "Price": 19.99,
        "Location": {"Aisle": "Aisle 12"},
    },
    {
        "Store": "0150",
        "SKU": "1502321",
        "Quantity": 0,
        "Description": "Widget (other store)",
        "Price": 21.5,
    },
]


def test_url_keeps_commas_literal():
    assert build_availability_url(["0459", "0150"], "1502321") == URL


def test_one_entry_per_record(console_config):
    session = FakeSession(FakeResponse(RECORDS))
    snap = check_stock(console_config, session=session)

    assert snap.sku == "1502321"
    assert snap.name == "Widget"
    assert snap.url == URL
    assert [s.store for s in snap.stores] == ["0459", "0150"]
    assert [s.quantity for s in snap.stores] == [3, 0]

    first = snap.stores[0]
    assert first.name == "Canadian Tire 0459"
    assert first.location == "Aisle 12"
    assert first.price == 19.99
    assert snap.stores[1].location is None


def test_request_shape(console_config):
    session = FakeSession(FakeResponse([]))
    check_stock(console_config, session=session)

    url, kwargs = session.calls[0]
    assert url == URL
    assert kwargs["timeout"] > 0
    # an injected session is left open for its owner
    assert session.closed is False


def test_empty_array_means_every_store_out_of_stock(console_config):
    snap = check_stock(console_config, session=FakeSession(FakeResponse([])))

    assert snap.name is None
    assert snap.display_name == "1502321"
    assert snap.stores == [StoreStock("0459", 0), StoreStock("0150", 0)]
    assert snap.in_stock() == []


def test_partial_response_is_not_reconciled(console_config):
    # Only 0459 answered; 0150 is neither added nor flagged.
    snap = check_stock(console_config, session=FakeSession(FakeResponse(RECORDS[:1])))
    assert [s.store for s in snap.stores] == ["0459"]


def test_unreadable_quantity_is_zero(console_config):
    records = [{"Store": "0459", "Quantity": "lots", "Description": "Widget"},
               {"Store": "0150", "Quantity": -2, "Description": "Widget"}]
    snap = check_stock(console_config, session=FakeSession(FakeResponse(records)))
    assert [s.quantity for s in snap.stores] == [0, 0]
    assert snap.stores[0].price is None


def test_http_status_failure(console_config):
    with pytest.raises(StockCheckError) as exc_info:
        check_stock(console_config, session=FakeSession(FakeResponse(status_code=403)))
    assert exc_info.value.status_code == 403


def test_network_failure(console_config):
    session = FakeSession(exc=requests.ConnectionError("connection refused"))
    with pytest.raises(StockCheckError) as exc_info:
        check_stock(console_config, session=session)
    assert exc_info.value.status_code is None


def test_bad_json(console_config):
    with pytest.raises(StockCheckError, match="not valid JSON"):
        check_stock(console_config, session=FakeSession(FakeResponse(bad_json=True)))


def test_non_array_body(console_config):
    with pytest.raises(StockCheckError, match="JSON array"):
        check_stock(console_config, session=FakeSession(FakeResponse({"error": "rate limited"})))


def test_own_session_is_closed(console_config, monkeypatch):
    session = FakeSession(FakeResponse([]))
    monkeypatch.setattr(scraper, "get_http_session", lambda: session)
    check_stock(console_config)
    assert session.closed is True


def test_session_looks_like_a_browser():
    session = get_http_session()
    try:
        assert session.headers["User-Agent"].startswith("Mozilla/5.0")
        assert session.headers["Referer"] == "https://stocktrack.ca/"
        assert "Accept-Language" in session.headers
        assert session.headers["Cache-Control"] == "max-age=0"
    finally:
        session.close()


@pytest.mark.parametrize(
    "store, expected",
    [
        (StoreStock("0459", 3, "Canadian Tire 0459", "Aisle 12", 19.99),
         "Canadian Tire 0459: 3 in stock at $19.99 (Aisle 12)"),
        (StoreStock("0459", 1, price=5.0), "0459: 1 in stock at $5.00"),
        (StoreStock("0150", 0, "Canadian Tire 0150", "Aisle 3", 9.99),
         "Canadian Tire 0150: 0 in stock"),
    ],
)
def test_store_summary(store, expected):
    assert store.summary() == expected


def test_overflowing_quantity_is_zero(console_config):
    # 1e400 is valid JSON and decodes to float("inf")
    records = json.loads('[{"Store": "0459", "Quantity": 1e400, "Description": "Widget", "Price": 1e400}]')
    snap = check_stock(console_config, session=FakeSession(FakeResponse(records)))

    assert snap.stores[0].quantity == 0
    assert snap.stores[0].price is None
    assert snap.in_stock() == []


def test_html_body_from_real_response(console_config):
    resp = requests.Response()
    resp.status_code = 200
    resp.encoding = "utf-8"
    resp._content = b"<html><body>Access denied</body></html>"

    with pytest.raises(StockCheckError, match="not valid JSON") as exc_info:
        check_stock(console_config, session=FakeSession(resp))
    assert exc_info.value.status_code is None

import json
from decimal import Decimal

import pytest

from backtester.models import Direction
from backtester.replay import EventFile, load_event_file, replay_into
from backtester.statistics.store import TimelineStore
from backtester.utils.exceptions import ConfigError, UnsetCurrencyStatisticsError


def event(kind: str, offset: int, **fields) -> dict:
    return {
        "kind": kind,
        "offset": offset,
        "exchange": "binance",
        "asset": "spot",
        "pair": "BTC-USDT",
        "time": f"2024-01-01T0{offset}:00:00Z",
        **fields,
    }


@pytest.fixture
def payload():
    return {
        "strategy": {"name": "dollarcostaverage", "nickname": "dca"},
        "events": [
            event("data", 0, close_price="100"),
            event("signal", 0, close_price="100", direction="BUY"),
            event("order", 0, direction="BUY", price="100"),
            event("fill", 0, direction="BUY", purchase_price="100", amount="1", total="100.1"),
            event("data", 1, close_price="110"),
        ],
        "holdings": [
            {"exchange": "binance", "asset": "spot", "pair": "BTC-USDT", "offset": 1, "total_value": "1010"},
        ],
        "compliance": [
            {
                "fill": event("fill", 1, direction="DO NOTHING"),
                "snapshot": {"offset": 1, "orders": [{"order_id": "1", "direction": "BUY", "amount": "1"}]},
            }
        ],
        "funding": {
            "usd_rates": {"USDT": "1"},
            "pools": [
                {
                    "exchange": "binance",
                    "asset": "spot",
                    "pair": "BTC-USDT",
                    "base_currency": "BTC",
                    "quote_currency": "USDT",
                    "quote_initial": "1000",
                },
            ],
        },
    }


@pytest.fixture
def event_path(tmp_path, payload):
    path = tmp_path / "events.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_event_file(event_path):
    event_file = load_event_file(event_path)

    assert event_file.strategy.name == "dollarcostaverage"
    assert [e.kind for e in event_file.events] == ["data", "signal", "order", "fill", "data"]
    assert event_file.funding.usd_rates == {"USDT": Decimal(1)}


def test_load_event_file_missing(tmp_path):
    with pytest.raises(ConfigError) as exc_info:
        load_event_file(tmp_path / "missing.json")

    assert "not found" in str(exc_info.value)


def test_load_event_file_invalid(tmp_path):
    path = tmp_path / "events.json"
    path.write_text(json.dumps({"events": [{"kind": "data", "offset": -1}]}), encoding="utf-8")

    with pytest.raises(ConfigError) as exc_info:
        load_event_file(path)

    assert "validation errors" in str(exc_info.value)


def test_load_event_file_not_json(tmp_path):
    path = tmp_path / "events.json"
    path.write_text("not json", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_event_file(path)


def test_replay_into(event_path):
    store = TimelineStore()

    count = replay_into(store, load_event_file(event_path))

    assert count == 5
    events = store.get_timeline("binance", "spot", "BTC-USDT").events
    assert len(events) == 2
    assert events[0].signal_event.direction is Direction.BUY
    assert events[0].order_event.price == Decimal(100)
    assert events[0].fill_event.total == Decimal("100.1")
    assert events[1].holdings.total_value == Decimal(1010)
    assert events[1].transactions.orders[0].order_id == "1"


def test_replay_into_unknown_tuple():
    event_file = EventFile.model_validate(
        {"events": [event("data", 0), {**event("signal", 0), "pair": "ETH-USDT"}]}
    )

    with pytest.raises(UnsetCurrencyStatisticsError):
        replay_into(TimelineStore(), event_file)


def test_funding_source(event_path):
    funding = load_event_file(event_path).funding_source()

    assert funding.is_using_exchange_level_funding() is False
    report = funding.generate_report(None, None)
    assert report.initial_total_usd == Decimal(1000)

import json
from datetime import datetime
from decimal import Decimal

import pytest

from backtester.funding import StaticFunding
from backtester.models import (
    ComplianceSnapshot,
    Direction,
    EventRecord,
    FinalResultsHolder,
    Holding,
    MaxDrawdown,
    PairFunding,
)
from backtester.statistics.aggregator import (
    ResultsAggregator,
    active_event,
    format_decimal,
    get_best_market_performer,
    get_best_strategy_performer,
    get_biggest_drawdown_across_currencies,
    render_record,
)
from backtester.statistics.store import TimelineStore
from backtester.utils.exceptions import CalculationError, FundingLookupError
from tests.factories import at, make_data, make_fill, make_signal


def btc_pool() -> PairFunding:
    return PairFunding(
        exchange="binance",
        asset="spot",
        pair="BTC-USDT",
        base_currency="BTC",
        quote_currency="USDT",
        quote_initial=Decimal(1000),
        quote_available=Decimal(1100),
    )


def eth_pool() -> PairFunding:
    return PairFunding(
        exchange="binance",
        asset="spot",
        pair="ETH-USDT",
        base_currency="ETH",
        quote_currency="USDT",
        quote_initial=Decimal(500),
        quote_available=Decimal(300),
        base_available=Decimal(10),
    )


@pytest.fixture
def store():
    """Two tuples: BTC falls 1% with a 10% drawdown, ETH rises 50%."""
    store = TimelineStore()
    for offset, close in enumerate(["100", "110", "99"]):
        store.record_event(make_data(offset, close=close))
    for offset, close in enumerate(["10", "12", "15"]):
        store.record_event(make_data(offset, close=close, pair="ETH-USDT"))

    btc = store.get_timeline("binance", "spot", "BTC-USDT").events
    eth = store.get_timeline("binance", "spot", "ETH-USDT").events
    store.apply_at_offset(make_fill(btc[1].data_event, Direction.BUY))
    store.apply_at_offset(make_fill(btc[2].data_event, Direction.DO_NOTHING))
    store.apply_at_offset(make_fill(eth[2].data_event, Direction.SELL))
    for offset, value in ((0, "1000"), (2, "1100")):
        store.attach_holdings(
            Holding(
                exchange="binance",
                asset="spot",
                pair="BTC-USDT",
                offset=offset,
                total_value=Decimal(value),
            )
        )
    store.attach_compliance(ComplianceSnapshot(offset=2), btc[2].fill_event)
    return store


@pytest.fixture
def funding():
    return StaticFunding(
        pools=[btc_pool(), eth_pool()],
        usd_rates={"USDT": Decimal(1), "BTC": Decimal(100), "ETH": Decimal(15)},
    )


@pytest.fixture
def aggregator(store):
    aggregator = ResultsAggregator(store)
    aggregator.set_strategy_name("dollarcostaverage", "dca", "accumulate")
    return aggregator


class RecordingFunding:
    """Funding source that remembers which events it was asked about."""

    def __init__(self, exchange_level: bool = False):
        self.events = []
        self.report_span = None
        self.exchange_level = exchange_level

    def funding_for_event(self, event):
        self.events.append(event)
        return PairFunding(exchange=event.exchange, asset=event.asset, pair=event.pair)

    def generate_report(self, start, end):
        self.report_span = (start, end)
        return StaticFunding(pools=[]).generate_report(start, end)

    def is_using_exchange_level_funding(self):
        return self.exchange_level


def test_calculate_all_results(aggregator, funding):
    results = aggregator.calculate_all_results(funding)

    assert results.strategy_name == "dollarcostaverage"
    assert [s.pair for s in results.all_stats] == ["BTC-USDT", "ETH-USDT"]
    assert results.total_buy_orders == 1
    assert results.total_sell_orders == 1
    assert results.total_orders == 2
    assert results.was_any_data_missing is False

    btc, eth = results.all_stats
    assert btc.market_movement == Decimal(-1)
    assert btc.strategy_movement == Decimal(10)
    assert btc.max_drawdown.drawdown_percent == Decimal(10)
    assert eth.market_movement == Decimal(50)
    assert eth.strategy_movement == Decimal(-10)

    assert results.biggest_drawdown.pair == "BTC-USDT"
    assert results.best_market_movement.pair == "ETH-USDT"
    assert results.best_strategy_results.pair == "BTC-USDT"


def test_terminal_holdings_and_orders_set(aggregator, funding):
    results = aggregator.calculate_all_results(funding)

    btc = results.all_stats[0]
    assert btc.initial_holdings.total_value == Decimal(1000)
    assert btc.final_holdings.total_value == Decimal(1100)
    assert btc.final_orders.offset == 2
    assert results.all_stats[1].final_holdings is None


def test_funding_report_spans_all_tuples(store):
    store.record_event(make_data(9, close="1", pair="SOL-USDT", time=at(-3)))
    funding = RecordingFunding()

    results = ResultsAggregator(store).calculate_all_results(funding)

    assert funding.report_span == (at(-3), at(2))
    assert results.funding.start == at(-3)
    assert results.funding.end == at(2)


def test_funding_report_items(aggregator, funding):
    results = aggregator.calculate_all_results(funding)

    assert len(results.funding.items) == 4
    assert results.funding.initial_total_usd == Decimal(1500)
    assert results.funding.final_total_usd == Decimal(1100 + 300 + 150)


def test_funding_lookup_failure_aborts(aggregator):
    funding = StaticFunding(pools=[btc_pool()])

    with pytest.raises(FundingLookupError) as exc_info:
        aggregator.calculate_all_results(funding)

    assert exc_info.value.pair == "ETH-USDT"


def test_calculation_error_is_not_fatal(store, funding, log_messages):
    class FailingCalculator:
        def __init__(self, timeline):
            self.timeline = timeline

        def calculate_results(self, funding):
            self.timeline.buy_orders = 3
            self.timeline.show_missing_data_warning = True
            raise CalculationError("boom", self.timeline.exchange, self.timeline.asset, self.timeline.pair)

    aggregator = ResultsAggregator(store, calculator_factory=FailingCalculator)
    results = aggregator.calculate_all_results(funding)

    assert len(results.all_stats) == 2
    assert results.total_buy_orders == 6
    assert results.was_any_data_missing is True
    assert results.all_stats[0].final_holdings.total_value == Decimal(1100)
    assert results.best_market_movement is not None
    assert any("results calculation failed" in m for m in log_messages)


def test_single_tuple_skips_cross_tuple_results(funding):
    store = TimelineStore()
    store.record_event(make_data(0))
    store.record_event(make_data(1, close="105"))

    results = ResultsAggregator(store).calculate_all_results(funding)

    assert len(results.all_stats) == 1
    assert results.biggest_drawdown is None
    assert results.best_market_movement is None
    assert results.best_strategy_results is None


def test_missing_data_propagates(store, funding):
    last = store.get_timeline("binance", "spot", "ETH-USDT").events[-1]
    store.apply_at_offset(make_fill(last.data_event, Direction.MISSING_DATA))

    results = ResultsAggregator(store).calculate_all_results(funding)

    assert results.was_any_data_missing is True


def test_active_event_preference():
    data = make_data(0)
    signal = make_signal(data)
    fill = make_fill(data)

    assert active_event(EventRecord(data_event=data)) is data
    assert active_event(EventRecord(data_event=data, signal_event=signal)) is signal
    assert active_event(EventRecord(data_event=data, signal_event=signal, fill_event=fill)) is fill


def test_funding_requested_for_terminal_event(store):
    funding = RecordingFunding()

    ResultsAggregator(store).calculate_all_results(funding)

    assert [e.kind for e in funding.events] == ["fill", "fill"]
    assert [e.offset for e in funding.events] == [2, 2]


def test_chronological_lines_grouped_by_time(store):
    store.record_event(make_data(0, close="1", pair="SOL-USDT", time=at(-1)))
    aggregator = ResultsAggregator(store)

    lines = aggregator.print_all_events_chronologically()

    assert lines == [
        "2023-12-31 23:00:00 binance spot SOL-USDT | Price: $1 - Reason: candle 0",
        "2024-01-01 00:00:00 binance spot BTC-USDT | Price: $100 - Reason: candle 0",
        "2024-01-01 00:00:00 binance spot ETH-USDT | Price: $10 - Reason: candle 0",
        "2024-01-01 01:00:00 binance spot BTC-USDT | Price: $110 - Amount: 1 - Fee: $0.1 - "
        "Total: $110.1 - Direction: BUY - Reason: filled",
        "2024-01-01 01:00:00 binance spot ETH-USDT | Price: $12 - Reason: candle 1",
        "2024-01-01 02:00:00 binance spot BTC-USDT | Price: $99 - Direction: DO NOTHING - Reason: filled",
        "2024-01-01 02:00:00 binance spot ETH-USDT | Price: $15 - Amount: 1 - Fee: $0.1 - "
        "Total: $15.1 - Direction: SELL - Reason: filled",
    ]
    assert aggregator.results.audit_errors == []


def test_signal_line_uses_signal_price():
    data = make_data(0, close="100")
    signal = make_signal(data)
    signal.close_price = Decimal("100.123456789")

    when, line = render_record(EventRecord(data_event=data, signal_event=signal))

    assert when == at(0)
    assert line == "2024-01-01 00:00:00 binance spot BTC-USDT | Price: $100.12345679 - Reason: signal"


def test_empty_direction_fill_is_informational():
    data = make_data(0)
    fill = make_fill(data, Direction.UNSET)

    _, line = render_record(EventRecord(data_event=data, fill_event=fill))

    assert "Amount" not in line
    assert "Direction:  - Reason: filled" in line


def test_malformed_record_collected_not_raised(store, log_messages):
    store.get_timeline("binance", "spot", "BTC-USDT").events.append(EventRecord())
    aggregator = ResultsAggregator(store)

    lines = aggregator.print_all_events_chronologically()

    assert len(lines) == 6
    assert len(aggregator.results.audit_errors) == 1
    assert "unexpected data received" in aggregator.results.audit_errors[0]
    assert log_messages.index("------------------Errors-------------------------------------") > log_messages.index(lines[-1])


def test_serialise(aggregator, funding):
    aggregator.calculate_all_results(funding)

    payload = json.loads(aggregator.serialise())

    assert payload["strategy_nickname"] == "dca"
    assert payload["total_orders"] == 2
    assert payload["best_market_movement"]["pair"] == "ETH-USDT"
    assert len(payload["all_stats"][0]["events"]) == 3


def test_reset_keeps_strategy_identity(aggregator, funding):
    aggregator.calculate_all_results(funding)

    aggregator.reset()

    assert len(aggregator.store) == 0
    assert aggregator.results.all_stats == []
    assert aggregator.results.strategy_name == "dollarcostaverage"


def test_repeated_calculation_does_not_double_count(aggregator, funding):
    aggregator.calculate_all_results(funding)
    results = aggregator.calculate_all_results(funding)

    assert len(results.all_stats) == 2
    assert results.total_orders == 2


def test_total_results_logged(aggregator, funding, log_messages):
    aggregator.calculate_all_results(funding)

    assert "Strategy Name: dollarcostaverage" in log_messages
    assert "Total orders: 2" in log_messages
    assert "Best performing market movement: binance spot ETH-USDT 50%" in log_messages
    assert "Calculated Drawdown: 10%" in log_messages


def holder(pair: str, market: str = "0", strategy: str = "0", drawdown: str = "0") -> FinalResultsHolder:
    return FinalResultsHolder(
        exchange="binance",
        asset="spot",
        pair=pair,
        market_movement=Decimal(market),
        strategy_movement=Decimal(strategy),
        max_drawdown=MaxDrawdown(drawdown_percent=Decimal(drawdown)),
    )


def test_best_performer_zero_then_positive():
    results = [holder("A"), holder("B", market="5", strategy="5", drawdown="5")]

    assert get_best_market_performer(results).pair == "B"
    assert get_best_strategy_performer(results).pair == "B"
    assert get_biggest_drawdown_across_currencies(results).pair == "B"


def test_best_performer_all_zero_returns_last():
    results = [holder("A"), holder("B"), holder("C")]

    assert get_best_market_performer(results).pair == "C"
    assert get_best_strategy_performer(results).pair == "C"
    assert get_biggest_drawdown_across_currencies(results).pair == "C"


def test_best_performer_picks_greatest():
    results = [holder("A", market="3"), holder("B", market="7"), holder("C", market="7"), holder("D", market="1")]

    assert get_best_market_performer(results).pair == "B"


def test_best_performer_negative_first_is_replaced():
    results = [holder("A", strategy="-4"), holder("B", strategy="-2")]

    assert get_best_strategy_performer(results).pair == "B"


def test_best_performer_empty():
    assert get_best_market_performer([]) == FinalResultsHolder()


def test_format_decimal():
    assert format_decimal(Decimal("100")) == "100"
    assert format_decimal(Decimal("0.123456785")) == "0.12345679"
    assert format_decimal(Decimal("12.345"), 2) == "12.35"
    assert format_decimal(Decimal(0)) == "0"


def test_mixed_naive_and_aware_times(funding):
    store = TimelineStore()
    store.record_event(make_data(0))
    store.record_event(make_data(0, close="10", pair="ETH-USDT", time=datetime(2024, 1, 1, 5)))
    aggregator = ResultsAggregator(store)

    results = aggregator.calculate_all_results(funding)

    assert results.funding.start == at(0)
    assert results.funding.end == at(5)
    assert [line[:19] for line in aggregator.print_all_events_chronologically()] == [
        "2024-01-01 00:00:00",
        "2024-01-01 05:00:00",
    ]


def test_large_prices_are_logged():
    store = TimelineStore()
    store.record_event(make_data(0, close="123456789012345678901"))

    lines = ResultsAggregator(store).print_all_events_chronologically()

    assert lines == ["2024-01-01 00:00:00 binance spot BTC-USDT | Price: $123456789012345678901 - Reason: candle 0"]


def test_format_decimal_large_and_special_values():
    assert format_decimal(Decimal("123456789012345678901.123456789")) == "123456789012345678901.12345679"
    assert format_decimal(Decimal("1E+30")) == "1000000000000000000000000000000"
    assert format_decimal(Decimal("Infinity")) == "Infinity"


def test_empty_terminal_record_does_not_abort(store, funding):
    store.get_timeline("binance", "spot", "BTC-USDT").events.append(EventRecord())
    aggregator = ResultsAggregator(store)

    results = aggregator.calculate_all_results(funding)

    assert len(results.audit_errors) == 1
    btc = results.all_stats[0]
    assert btc.final_holdings.total_value == Decimal(1100)
    assert btc.final_orders.offset == 2
    assert btc.market_movement == Decimal(-1)
    assert results.funding.end == at(2)

"""Chart payload normalization: rounding, zero-as-absent, labels, malformed input."""
from datetime import datetime, timezone

import pytest

from finsent.analysis import SeriesKind, calculate_domain
from finsent.data_sources import SeriesSample, Timeframe, normalize_chart_data
from finsent.errors import MalformedPayload


SCENARIO = [
    {"time": "2024-01-01", "close": 100.004, "avg_sentiment": None, "google_score": 50},
    {"time": "2024-01-02", "close": None, "avg_sentiment": -0.5, "google_score": None},
]


def test_scenario_payload_normalizes_with_gaps():
    samples = normalize_chart_data(SCENARIO, "1Y")

    assert len(samples) == 2
    first, second = samples
    assert first.timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert (first.price, first.sentiment, first.trend_score) == (100.0, None, 50.0)
    assert (second.price, second.sentiment, second.trend_score) == (None, -0.5, None)

    domain = calculate_domain(samples, SeriesKind.PRICE)
    assert domain.to_list() == [100.0, 100.0]


def test_zero_values_are_treated_as_missing():
    samples = normalize_chart_data(
        [{"time": "2024-03-01T10:00:00Z", "close": 0, "avg_sentiment": 0.0, "google_score": 0}],
        Timeframe.WEEK,
    )
    assert samples[0].is_gap


def test_all_absent_record_is_kept_not_dropped():
    samples = normalize_chart_data(
        [
            {"time": "2024-03-01", "close": 10},
            {"time": "2024-03-02"},
            {"time": "2024-03-03", "close": 12},
        ],
        "1M",
    )
    assert [s.price for s in samples] == [10.0, None, 12.0]
    assert samples[1].is_gap


def test_values_rounded_to_two_decimals():
    samples = normalize_chart_data(
        [{"time": "2024-03-01", "close": 187.23987, "avg_sentiment": 0.33333, "google_score": 71.456}],
        "ALL",
    )
    assert samples[0] == SeriesSample(
        timestamp=datetime(2024, 3, 1, tzinfo=timezone.utc),
        label="Mar 01",
        price=187.24,
        sentiment=0.33,
        trend_score=71.46,
    )


def test_non_finite_values_become_absent():
    samples = normalize_chart_data(
        [{"time": "2024-03-01", "close": float("nan"), "google_score": float("inf")}], "1Y"
    )
    assert samples[0].price is None
    assert samples[0].trend_score is None


@pytest.mark.parametrize("timeframe, label", [
    ("1W", "Mar 05, 14:30"),
    ("1M", "Mar 05, 14:30"),
    ("1Y", "Mar 05"),
    ("ALL", "Mar 05"),
])
def test_label_granularity_follows_timeframe(timeframe, label):
    samples = normalize_chart_data([{"time": "2024-03-05T14:30:00+00:00", "close": 1.5}], timeframe)
    assert samples[0].label == label


def test_epoch_seconds_and_offsets_are_converted_to_utc():
    samples = normalize_chart_data(
        [
            {"time": 1704067200, "close": 1},
            {"time": "2024-01-01T02:00:00+02:00", "close": 2},
        ],
        "1W",
    )
    expected = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert samples[0].timestamp == expected
    assert samples[1].timestamp == expected


def test_order_and_cardinality_preserved():
    records = [{"time": f"2024-01-{d:02d}", "close": d} for d in (5, 3, 9, 1)]
    samples = normalize_chart_data(records, "1Y")
    assert [s.price for s in samples] == [5.0, 3.0, 9.0, 1.0]


def test_normalization_is_idempotent():
    assert normalize_chart_data(SCENARIO, "1Y") == normalize_chart_data(SCENARIO, "1Y")


def test_empty_payload_gives_empty_samples():
    assert normalize_chart_data([], "1W") == []


@pytest.mark.parametrize("payload", [
    None,
    42,
    "not a list",
    b"bytes",
    {"data": []},
    (r for r in SCENARIO),
])
def test_non_sequence_payload_is_malformed(payload):
    with pytest.raises(MalformedPayload):
        normalize_chart_data(payload, "1W")


@pytest.mark.parametrize("record", [
    "2024-01-01",
    {"close": 10},
    {"time": "not a date", "close": 10},
    {"time": "2024-01-01", "close": "10"},
    {"time": "2024-01-01", "avg_sentiment": True},
    {"time": "2024-01-01", "close": 10**400},
])
def test_bad_record_is_malformed(record):
    payload = [{"time": "2024-01-01", "close": 1}, record]
    with pytest.raises(MalformedPayload):
        normalize_chart_data(payload, "1W")


def test_unknown_timeframe_rejected():
    with pytest.raises(ValueError):
        normalize_chart_data([], "1D")


def test_timeframe_parse_is_case_insensitive():
    assert Timeframe.parse("all") is Timeframe.ALL
    assert Timeframe.parse(Timeframe.YEAR) is Timeframe.YEAR

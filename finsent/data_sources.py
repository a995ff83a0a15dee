"""
Data Sources - chart payload normalization and backend HTTP clients
Pure normalization, thin aiohttp clients
"""

import asyncio
import logging
import math
import numbers
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

import aiohttp
import orjson
import pandas as pd

from .errors import MalformedPayload, NetworkError, ProbeFailure

log = logging.getLogger(__name__)


class Timeframe(str, Enum):
    """Chart window requested from the backend"""
    WEEK = '1W'
    MONTH = '1M'
    YEAR = '1Y'
    ALL = 'ALL'

    @property
    def intraday_labels(self) -> bool:
        return self in (Timeframe.WEEK, Timeframe.MONTH)

    @property
    def label_format(self) -> str:
        # Short windows need the hour, long ones only month/day
        return '%b %d, %H:%M' if self.intraday_labels else '%b %d'

    @classmethod
    def parse(cls, value) -> 'Timeframe':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            choices = ', '.join(tf.value for tf in cls)
            raise ValueError(f"Unknown timeframe {value!r} (expected one of {choices})") from None


@dataclass(frozen=True)
class SeriesSample:
    """One time bucket of up to three optional signals"""
    timestamp: datetime
    label: str
    price: Optional[float] = None
    sentiment: Optional[float] = None  # conceptually in [-1, 1]
    trend_score: Optional[float] = None

    @property
    def is_gap(self) -> bool:
        return self.price is None and self.sentiment is None and self.trend_score is None


# Wire field -> SeriesSample attribute
FIELD_MAP = {
    'close': 'price',
    'avg_sentiment': 'sentiment',
    'google_score': 'trend_score',
}


def _parse_time(value, index: int) -> datetime:
    if value is None or isinstance(value, bool):
        raise MalformedPayload(f"record {index}: missing 'time'")
    try:
        if isinstance(value, numbers.Real):
            ts = pd.Timestamp(value, unit='s', tz='UTC')
        else:
            ts = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError) as e:
        raise MalformedPayload(f"record {index}: bad 'time' {value!r}") from e
    if pd.isna(ts):
        raise MalformedPayload(f"record {index}: bad 'time' {value!r}")
    ts = ts.tz_localize('UTC') if ts.tzinfo is None else ts.tz_convert('UTC')
    return ts.to_pydatetime()


def _clean_value(value, field: str, index: int) -> Optional[float]:
    """Round to cents; null, zero and non-finite all mean "no data"."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise MalformedPayload(f"record {index}: '{field}' is not a number: {value!r}")
    try:
        number = float(value)
    except (OverflowError, ValueError) as e:
        raise MalformedPayload(f"record {index}: '{field}' is out of range") from e
    # Zero is the upstream missing-value sentinel, checked before rounding
    if not number or not math.isfinite(number):
        return None
    return round(number, 2)


def normalize_chart_data(records, timeframe) -> list[SeriesSample]:
    """
    Turn raw chart-data records into SeriesSamples.

    Order and cardinality are preserved; all-absent records stay in as gaps so
    every series shares the same time axis. The whole payload is validated
    before anything is returned.
    """
    timeframe = Timeframe.parse(timeframe)
    if (isinstance(records, (str, bytes, bytearray, Mapping))
            or not isinstance(records, Sequence)):
        raise MalformedPayload(f"chart data must be a sequence of records, got {type(records).__name__}")

    samples = []
    for i, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise MalformedPayload(f"record {i} is not an object: {record!r}")
        ts = _parse_time(record.get('time'), i)
        values = {attr: _clean_value(record.get(field), field, i) for field, attr in FIELD_MAP.items()}
        samples.append(SeriesSample(
            timestamp=ts,
            label=ts.strftime(timeframe.label_format),
            **values,
        ))
    return samples


@dataclass(frozen=True)
class LiveQuote:
    """Latest price with day change"""
    symbol: str
    price: float
    change: float
    percent_change: float

    @property
    def is_positive(self) -> bool:
        return self.percent_change >= 0

    @property
    def change_text(self) -> str:
        sign = '+' if self.is_positive else ''
        return f"{sign}{self.change:.2f} ({sign}{self.percent_change:.2f}%)"

    @classmethod
    def from_payload(cls, payload) -> 'LiveQuote':
        if not isinstance(payload, Mapping):
            raise MalformedPayload(f"live price must be an object, got {type(payload).__name__}")
        try:
            return cls(
                symbol=str(payload['symbol']),
                price=float(payload['price']),
                change=float(payload['change']),
                percent_change=float(payload['percent_change']),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedPayload(f"bad live price payload: {e}") from e


class ChartDataClient:
    """Async client for the chart-data and live-price endpoints"""

    CHART_PATH = '/api/v1/chart-data'
    QUOTE_PATH = '/api/v1/live-price'

    def __init__(self, base_url: str, timeout: float = 10.0,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def close(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _get_json(self, path: str, params: dict):
        url = f"{self.base_url}{path}"
        session = self._get_session()
        try:
            async with session.get(url, params=params,
                                   timeout=aiohttp.ClientTimeout(total=self.timeout)) as resp:
                if not 200 <= resp.status < 300:
                    raise NetworkError(f"GET {path} returned HTTP {resp.status}", status=resp.status)
                body = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"GET {path} failed: {e!r}") from e
        try:
            return orjson.loads(body)
        except orjson.JSONDecodeError as e:
            raise MalformedPayload(f"GET {path} returned invalid JSON") from e

    async def fetch_chart_data(self, symbol: str, timeframe) -> list:
        """Raw chart records for symbol/timeframe, oldest first"""
        timeframe = Timeframe.parse(timeframe)
        body = await self._get_json(self.CHART_PATH, {'symbol': symbol, 'timeframe': timeframe.value})
        if not isinstance(body, Mapping) or 'data' not in body:
            raise MalformedPayload("chart-data response has no 'data' field")
        records = body['data']
        log.debug("[CHART] %s %s: %s records", symbol, timeframe.value,
                  len(records) if isinstance(records, list) else '?')
        return records

    async def fetch_samples(self, symbol: str, timeframe) -> list[SeriesSample]:
        records = await self.fetch_chart_data(symbol, timeframe)
        return normalize_chart_data(records, timeframe)

    async def fetch_live_quote(self, symbol: str) -> LiveQuote:
        body = await self._get_json(self.QUOTE_PATH, {'symbol': symbol})
        return LiveQuote.from_payload(body)


class HttpLivenessProbe:
    """GET {base_url}/ping; returns on any 2xx, raises ProbeFailure otherwise"""

    PING_PATH = '/ping'

    def __init__(self, base_url: str, timeout: float = 1.0,
                 session: Optional[aiohttp.ClientSession] = None):
        self.url = f"{base_url.rstrip('/')}{self.PING_PATH}"
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __call__(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        try:
            async with self._session.get(self.url,
                                         timeout=aiohttp.ClientTimeout(total=self.timeout)) as resp:
                if not 200 <= resp.status < 300:
                    raise ProbeFailure(f"{self.url} returned HTTP {resp.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise ProbeFailure(f"{self.url} unreachable: {e!r}") from e

    async def close(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

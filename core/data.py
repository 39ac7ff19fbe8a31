from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Literal, Optional

import httpx
import pandas as pd

from core.facets import compute_facets
from core.filters import FilterState, apply_user_filters, as_text, normalize_filters

logger = logging.getLogger(__name__)

RECORDS_URL = os.getenv("SURVEY_RECORDS_URL", "https://dashboard-backend-0t5x.onrender.com/api/data")
FETCH_TIMEOUT = float(os.getenv("SURVEY_FETCH_TIMEOUT", "10.0"))

CATEGORY_COLUMNS = ["sector", "topic", "region", "pestle", "source", "country", "end_year"]
SCORE_COLUMNS = ["intensity", "likelihood", "relevance", "impact"]
RECORD_COLUMNS = CATEGORY_COLUMNS + SCORE_COLUMNS

StoreStatus = Literal["idle", "fetching", "ready"]


class RecordSourceError(RuntimeError):
    """The records endpoint could not be read or did not return a JSON array."""


def fetch_records(url: str = RECORDS_URL, *, timeout: float = FETCH_TIMEOUT, client: Optional[httpx.Client] = None) -> List[dict]:
    """GET the records endpoint and return the raw JSON array."""
    try:
        if client is None:
            with httpx.Client(timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0))) as owned:
                response = owned.get(url)
        else:
            response = client.get(url)
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as exc:
        raise RecordSourceError(f"records endpoint returned HTTP {exc.response.status_code}") from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise RecordSourceError(f"records fetch failed: {exc}") from exc
    except ValueError as exc:
        raise RecordSourceError("records endpoint returned malformed JSON") from exc

    if not isinstance(payload, list):
        raise RecordSourceError(f"expected a JSON array of records, got {type(payload).__name__}")
    return payload


def category_text(value: object) -> str:
    # Falsy scalars (0, false) carry no label.
    if pd.api.types.is_number(value) and value == 0:
        return ""
    return as_text(value)


def coerce_category_columns(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col not in df.columns:
            df[col] = ""
        df[col] = df[col].map(category_text).astype(object)
    return df


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col not in df.columns:
            df[col] = float("nan")
        df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)
    return df


def records_to_frame(items: Iterable[object]) -> pd.DataFrame:
    rows = [item for item in items if isinstance(item, dict)]
    if not rows:
        return pd.DataFrame({col: pd.Series(dtype=object if col in CATEGORY_COLUMNS else float) for col in RECORD_COLUMNS})
    df = pd.DataFrame.from_records(rows)
    df = coerce_category_columns(df, CATEGORY_COLUMNS)
    df = numericize(df, SCORE_COLUMNS)
    return df[RECORD_COLUMNS].reset_index(drop=True)


def validate_records(df: pd.DataFrame) -> pd.DataFrame:
    """Drop records lacking sector/topic or with a non-positive score."""
    if df.empty:
        return df
    mask = pd.Series(True, index=df.index)
    for col in ["sector", "topic"]:
        if col not in df.columns:
            return df.iloc[0:0]
        mask &= df[col].notna() & df[col].astype(str).ne("")
    for col in SCORE_COLUMNS:
        if col not in df.columns:
            return df.iloc[0:0]
        # NaN > 0 is False, so missing scores drop out here.
        mask &= pd.to_numeric(df[col], errors="coerce").gt(0)
    return df[mask]


@dataclass(frozen=True)
class StoreSnapshot:
    status: StoreStatus
    records: pd.DataFrame
    fetched_at: Optional[datetime]
    error: Optional[str]
    raw_count: int


class RecordStore:
    """Last-known-good record collection with ordered refreshes.

    Every refresh takes a ticket. A completed fetch is committed only when its
    ticket is newer than the last committed one, so a slow response can never
    overwrite data from a refresh that was issued after it.
    """

    def __init__(self, url: str = RECORDS_URL, *, timeout: float = FETCH_TIMEOUT, client: Optional[httpx.Client] = None) -> None:
        self.url = url
        self.timeout = timeout
        self.client = client
        self._lock = threading.Lock()
        self._issued = 0
        self._committed = 0
        self._in_flight = 0
        self._records = records_to_frame([])
        self._raw_count = 0
        self._fetched_at: Optional[datetime] = None
        self._error: Optional[str] = None
        self._error_ticket = 0

    def begin(self) -> int:
        with self._lock:
            self._issued += 1
            self._in_flight += 1
            return self._issued

    def commit(self, ticket: int, items: List[dict]) -> bool:
        frame = validate_records(records_to_frame(items)).reset_index(drop=True)
        with self._lock:
            self._in_flight = max(0, self._in_flight - 1)
            if ticket <= self._committed:
                logger.info("Discarding stale records response (ticket %s, committed %s)", ticket, self._committed)
                return False
            self._committed = ticket
            self._records = frame
            self._raw_count = len(items)
            self._fetched_at = datetime.now(timezone.utc)
            if ticket > self._error_ticket:
                self._error = None
        logger.info("Loaded %s valid records out of %s", len(frame), len(items))
        return True

    def fail(self, ticket: int, exc: Exception) -> None:
        with self._lock:
            self._in_flight = max(0, self._in_flight - 1)
            if ticket <= self._committed:
                return
            self._error = str(exc)
            self._error_ticket = max(self._error_ticket, ticket)
        logger.warning("Records refresh failed, keeping previous data: %s", exc)

    def refresh(self, client: Optional[httpx.Client] = None) -> StoreSnapshot:
        ticket = self.begin()
        try:
            items = fetch_records(self.url, timeout=self.timeout, client=client if client is not None else self.client)
            self.commit(ticket, items)
        except RecordSourceError as exc:
            self.fail(ticket, exc)
        except Exception as exc:
            logger.exception("Unexpected error while refreshing records")
            self.fail(ticket, exc)
        return self.snapshot()

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            if self._in_flight:
                status: StoreStatus = "fetching"
            elif self._fetched_at is not None:
                status = "ready"
            else:
                status = "idle"
            return StoreSnapshot(
                status=status,
                records=self._records,
                fetched_at=self._fetched_at,
                error=self._error,
                raw_count=self._raw_count,
            )

    @property
    def loaded(self) -> bool:
        with self._lock:
            return self._fetched_at is not None


# ---------------- Public API (Streamlit parity + FastAPI use) ----------------
_store = RecordStore()


def get_store() -> RecordStore:
    return _store


def set_store(store: RecordStore) -> RecordStore:
    global _store
    _store = store
    return store


def load_dashboard_data(*, refresh: bool = False, fetch_missing: bool = True) -> Dict[str, object]:
    """Snapshot the shared store, fetching on demand.

    ``fetch_missing=False`` returns whatever the store holds (even when idle),
    for callers that just ran a refresh themselves.
    """
    store = get_store()
    if refresh or (fetch_missing and not store.loaded):
        snap = store.refresh()
    else:
        snap = store.snapshot()
    return {
        "records": snap.records,
        "status": snap.status,
        "fetched_at": snap.fetched_at,
        "error": snap.error,
        "raw_count": snap.raw_count,
    }


def prepare_context(filters: dict | FilterState, data_ctx: Dict[str, object]) -> Dict[str, object]:
    records: pd.DataFrame = data_ctx.get("records", records_to_frame([]))
    filt = filters if isinstance(filters, FilterState) else normalize_filters(filters)
    filtered_records = apply_user_filters(records, filt)
    return {
        "filters": filt,
        "records": records,
        "filtered_records": filtered_records,
        "facets": compute_facets(filtered_records),
        "status": data_ctx.get("status", "idle"),
        "fetched_at": data_ctx.get("fetched_at"),
        "error": data_ctx.get("error"),
        "raw_count": data_ctx.get("raw_count", 0),
    }

#!/usr/bin/env python3
"""Letterboxd list -> Jellyfin collection sync.

Architecture:
- Fetcher: rate-limited, robots.txt-aware HTTP GETs against letterboxd.com
  (at most four requests in flight for the whole run).
- Parsers: pure functions over page HTML that extract list metadata, film
  stubs and the TMDB/IMDb ids of a film.
- Sync: scrapes every configured list in parallel, resolves ids through a
  persistent SQLite cache, and reconciles each Jellyfin collection.

The refresh runs once or on an interval; the id cache survives restarts so a
second run only fetches detail pages for films it has not seen before.
"""

from __future__ import annotations

import argparse
import asyncio
import copy
import datetime as dt
import json
import logging
import re
import signal
import sqlite3
import threading
import time
from collections import deque
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup
from protego import Protego
from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text


__version__ = "0.1.0"

LOGGER = logging.getLogger("letterboxd-collections")

USER_AGENT_TOKEN = "letterboxd-collections"

ALLOW_ALL_ROBOTS = ""
DISALLOW_ALL_ROBOTS = "User-agent: *\nDisallow: /\n"

# Shared by every list, page and film of a run.
MAX_CONCURRENT_REQUESTS = 4

LETTERBOXD_URL_RE = re.compile(r"^https://(www\.)?letterboxd\.com/.+$", re.IGNORECASE)
NUMBER_RE = re.compile(r"(\d[\d,]*(?:\.\d+)?)(k\b)?", re.IGNORECASE)
IMDB_TITLE_RE = re.compile(r"imdb\.com/title/(tt\d+)/")

META_DESCRIPTION_PREFIX = "A list of "
META_DESCRIPTION_SCAN_CHARS = 20

AVATAR_URL_PREFIX = "https://a.ltrbxd.com/resized/avatar/upload"
AVATAR_SIZE_RE = re.compile(r"avtr-0-\d+-0-\d+-crop")
AVATAR_FULL_SIZE = "avtr-0-1000-0-1000-crop"

DETAIL_LINK_ATTRIBUTES: Tuple[str, ...] = (
    "data-target-link",
    "data-item-link",
    "data-film-link",
)

JELLYFIN_ID_CHUNK_SIZE = 100


DEFAULT_CONFIG: Dict[str, Any] = {
    "lists": [],
    "jellyfin": {
        "base_url": "http://localhost:8096",
        "api_key": "",
        "user_id": "",
        "timeout_seconds": 30,
    },
    "letterboxd": {
        "base_url": "https://letterboxd.com",
        "timeout_seconds": 20,
        "contact_url": "",
    },
    "runtime": {
        "cache_path": "letterboxd_collections.sqlite3",
        "log_file_path": "logs/letterboxd_collections.log",
        "log_file_max_bytes": 10485760,
        "log_file_backup_count": 5,
        "log_level": "INFO",
        "run_mode": "continuous",
        "refresh_interval_hours": 24,
        "console_mode": "progress",
        "dashboard_event_lines": 8,
        "dashboard_event_dedupe_window_seconds": 30,
        "dashboard_event_max_message_length": 160,
    },
}

SUPPORTED_RUN_MODES: Set[str] = {
    "continuous",
    "once",
}

SUPPORTED_CONSOLE_MODES: Set[str] = {
    "progress",
    "raw",
}


def now_epoch() -> int:
    return int(time.time())


def to_iso(ts: int) -> str:
    return dt.datetime.fromtimestamp(ts, dt.timezone.utc).astimezone().strftime(
        "%d-%m-%y %H:%M:%S"
    )


def parse_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def parse_count(text: Optional[str]) -> Optional[int]:
    """First count in ``text`` ("1,234", "1.2k"); ``None`` unless positive."""
    match = NUMBER_RE.search(text or "")
    if match is None:
        return None
    number, thousands = match.groups()
    try:
        value = float(number.replace(",", ""))
    except ValueError:
        return None
    if thousands:
        value *= 1000
    value = int(round(value))
    if value <= 0:
        return None
    return value


def chunks(values: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for i in range(0, len(values), size):
        yield values[i : i + size]


def build_user_agent(contact_url: str = "") -> str:
    contact = str(contact_url or "").strip()
    suffix = f"; +{contact}" if contact else ""
    return f"Mozilla/5.0 (compatible; {USER_AGENT_TOKEN}/{__version__}{suffix})"


def merge_dict(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found at {path}. Create one (for example from config.example.json)."
        )

    with path.open("r", encoding="utf-8") as handle:
        loaded = json.load(handle)
    if not isinstance(loaded, dict):
        raise ValueError("Config file must contain a JSON object")

    config = merge_dict(DEFAULT_CONFIG, loaded)

    api_key = str(config["jellyfin"].get("api_key", "")).strip()
    placeholder_markers = ("YOUR_", "YOUR-", "CHANGEME", "REPLACE_ME")
    if not api_key or any(marker in api_key.upper() for marker in placeholder_markers):
        raise ValueError("Missing required API key in config: jellyfin.api_key")
    config["jellyfin"]["api_key"] = api_key

    for section in ("jellyfin", "letterboxd"):
        base_url = str(config[section].get("base_url", "")).strip().rstrip("/")
        if not base_url:
            raise ValueError(f"{section}.base_url must not be empty")
        config[section]["base_url"] = base_url
        config[section]["timeout_seconds"] = max(
            1, int(config[section]["timeout_seconds"])
        )
    config["jellyfin"]["user_id"] = str(config["jellyfin"].get("user_id") or "").strip()
    config["letterboxd"]["contact_url"] = str(
        config["letterboxd"].get("contact_url") or ""
    ).strip()

    runtime = config["runtime"]
    cache_path = str(runtime.get("cache_path", "")).strip()
    runtime["cache_path"] = cache_path or "letterboxd_collections.sqlite3"
    log_file_path = str(runtime.get("log_file_path", "")).strip()
    runtime["log_file_path"] = log_file_path or "logs/letterboxd_collections.log"
    runtime["log_file_max_bytes"] = max(1024, int(runtime.get("log_file_max_bytes", 10485760)))
    runtime["log_file_backup_count"] = max(0, int(runtime.get("log_file_backup_count", 5)))
    runtime["refresh_interval_hours"] = max(1, int(runtime.get("refresh_interval_hours", 24)))
    runtime["dashboard_event_lines"] = max(
        3, min(20, int(runtime.get("dashboard_event_lines", 8)))
    )
    runtime["dashboard_event_dedupe_window_seconds"] = max(
        1, int(runtime.get("dashboard_event_dedupe_window_seconds", 30))
    )
    runtime["dashboard_event_max_message_length"] = max(
        60, int(runtime.get("dashboard_event_max_message_length", 160))
    )

    run_mode = str(runtime.get("run_mode", "continuous")).strip().lower()
    if run_mode not in SUPPORTED_RUN_MODES:
        raise ValueError(
            "Invalid runtime.run_mode. Expected one of: "
            + ", ".join(sorted(SUPPORTED_RUN_MODES))
        )
    runtime["run_mode"] = run_mode

    console_mode = str(runtime.get("console_mode", "progress")).strip().lower()
    if console_mode not in SUPPORTED_CONSOLE_MODES:
        raise ValueError(
            "Invalid runtime.console_mode. Expected one of: "
            + ", ".join(sorted(SUPPORTED_CONSOLE_MODES))
        )
    runtime["console_mode"] = console_mode

    raw_lists = config.get("lists")
    if raw_lists is None:
        raw_lists = []
    if not isinstance(raw_lists, list):
        raise ValueError("lists must be an array of {name, url} objects")

    normalized_lists: List[Dict[str, str]] = []
    for idx, entry in enumerate(raw_lists):
        if not isinstance(entry, dict):
            raise ValueError(f"lists[{idx}] must be an object")
        name = str(entry.get("name") or "").strip()
        url = str(entry.get("url") or "").strip()
        if not name:
            raise ValueError(f"lists[{idx}].name must not be empty")
        if not url:
            raise ValueError(f"lists[{idx}].url must not be empty")
        normalized_lists.append({"name": name, "url": url})
    config["lists"] = normalized_lists

    return config


class ListParseError(ValueError):
    """A list page is missing a field the scrape cannot do without."""


class CacheStorageError(RuntimeError):
    pass


class HostAPIError(RuntimeError):
    pass


class PageUnavailableError(RuntimeError):
    """A page could not be fetched (denied by robots.txt, transport or HTTP error)."""


@dataclass
class ListConfig:
    name: str
    url: str


@dataclass
class ListMeta:
    page_count: int
    movie_count: int
    image_url: str


@dataclass
class ListInfo:
    name: str
    url: str
    page_count: int
    movie_count: int
    image_url: str
    first_page: str


@dataclass
class MovieStub:
    letterboxd_id: int
    detail_path: str


@dataclass(frozen=True)
class ExternalIds:
    tmdb_id: str
    imdb_id: Optional[str] = None


@dataclass
class LibraryMovie:
    item_id: str
    tmdb_id: Optional[str] = None
    imdb_id: Optional[str] = None
    name: str = ""


@dataclass
class Collection:
    collection_id: str
    name: str


@dataclass
class APIResponse:
    status: int
    headers: Dict[str, str]
    data: Any
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass
class SyncRunResult:
    lists_configured: int = 0
    lists_resolved: int = 0
    lists_updated: int = 0
    movies_estimated: int = 0
    movies_added: int = 0
    movies_removed: int = 0
    interrupted: bool = False


def build_list_configs(config: Dict[str, Any]) -> List[ListConfig]:
    return [ListConfig(name=entry["name"], url=entry["url"]) for entry in config.get("lists", [])]


@dataclass
class RecentEvent:
    timestamp: int
    level: str
    message: str
    count: int = 1


class RecentEvents:
    """Ring buffer of WARNING+ log lines shown in the live view."""

    def __init__(self, *, max_lines: int, dedupe_window_seconds: int, max_message_length: int):
        self.dedupe_window_seconds = max(1, int(dedupe_window_seconds))
        self.max_message_length = max(40, int(max_message_length))
        self._events: deque[RecentEvent] = deque(maxlen=max(1, int(max_lines)))
        self._lock = threading.Lock()

    def add(self, *, level: str, message: str, now_ts: Optional[int] = None) -> None:
        ts = now_epoch() if now_ts is None else int(now_ts)
        text = " ".join(str(message or "").split()) or "-"
        if len(text) > self.max_message_length:
            text = text[: self.max_message_length - 3] + "..."
        level_name = str(level or "INFO").upper()

        with self._lock:
            last = self._events[-1] if self._events else None
            if (
                last is not None
                and last.level == level_name
                and last.message == text
                and ts - last.timestamp <= self.dedupe_window_seconds
            ):
                last.count += 1
                last.timestamp = ts
                return
            self._events.append(RecentEvent(timestamp=ts, level=level_name, message=text))

    def snapshot(self) -> List[RecentEvent]:
        with self._lock:
            return list(self._events)


class QuietWhileLiveHandler(logging.StreamHandler):
    def __init__(self, *, live_active: threading.Event, allow_while_live: bool):
        super().__init__()
        self.live_active = live_active
        self.allow_while_live = bool(allow_while_live)

    def emit(self, record: logging.LogRecord) -> None:
        if self.live_active.is_set() and not self.allow_while_live:
            return
        # Tracebacks only go to the log file.
        clean_record = logging.makeLogRecord(record.__dict__.copy())
        clean_record.exc_info = None
        clean_record.exc_text = None
        clean_record.stack_info = None
        super().emit(clean_record)


class RecentEventsHandler(logging.Handler):
    def __init__(self, *, events: RecentEvents, min_level: int = logging.WARNING):
        super().__init__(level=min_level)
        self.events = events

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
            if record.exc_info and record.exc_info[0] is not None:
                message = f"{message} ({record.exc_info[0].__name__})"
            self.events.add(level=record.levelname, message=message)
        except Exception:
            self.handleError(record)


@dataclass
class LoggingRuntime:
    live_active: threading.Event
    events: RecentEvents
    log_file_path: Path


class IdCache:
    """Letterboxd film id -> (TMDB id, IMDb id), persisted in SQLite."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.path, check_same_thread=False)
            self._init_schema()
        except (OSError, sqlite3.Error) as exc:
            raise CacheStorageError(f"Could not open id cache at {self.path}: {exc}") from exc

    def __enter__(self) -> "IdCache":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def _init_schema(self) -> None:
        with self.conn:
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS id_mappings (
                    letterboxd_id INTEGER PRIMARY KEY,
                    tmdb_id TEXT NOT NULL,
                    imdb_id TEXT
                )
                """
            )

    def upsert(self, letterboxd_id: int, tmdb_id: str, imdb_id: Optional[str] = None) -> None:
        try:
            with self._lock, self.conn:
                self.conn.execute(
                    """
                    INSERT INTO id_mappings(letterboxd_id, tmdb_id, imdb_id)
                    VALUES (?, ?, ?)
                    ON CONFLICT(letterboxd_id) DO UPDATE SET
                        tmdb_id = excluded.tmdb_id,
                        imdb_id = excluded.imdb_id
                    """,
                    (int(letterboxd_id), str(tmdb_id), imdb_id or None),
                )
        except sqlite3.Error as exc:
            raise CacheStorageError(
                f"Could not store ids for Letterboxd ID {letterboxd_id}: {exc}"
            ) from exc

    def lookup(self, letterboxd_id: int) -> Optional[ExternalIds]:
        try:
            with self._lock:
                row = self.conn.execute(
                    "SELECT tmdb_id, imdb_id FROM id_mappings WHERE letterboxd_id = ?",
                    (int(letterboxd_id),),
                ).fetchone()
        except sqlite3.Error as exc:
            raise CacheStorageError(
                f"Could not read ids for Letterboxd ID {letterboxd_id}: {exc}"
            ) from exc
        if row is None:
            return None
        return ExternalIds(tmdb_id=row[0], imdb_id=row[1])

    def count(self) -> int:
        try:
            with self._lock:
                row = self.conn.execute("SELECT COUNT(*) FROM id_mappings").fetchone()
        except sqlite3.Error as exc:
            raise CacheStorageError(f"Could not count id cache entries: {exc}") from exc
        return int(row[0])


def is_letterboxd_url(url: str) -> bool:
    return LETTERBOXD_URL_RE.match(str(url or "")) is not None


def normalize_list_url(url: str) -> str:
    return url[:-1] if url.endswith("/") else url


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _film_nodes(soup: BeautifulSoup) -> List[Any]:
    return soup.select("div[data-film-id]")


def _page_count(soup: BeautifulSoup) -> int:
    items = soup.select("div.paginate-pages li")
    if not items:
        return 1
    # The current page is rendered without a link.
    link = items[-1].find("a")
    if link is None:
        return 1
    label = link.get_text(strip=True)
    if not label:
        return 1
    page_count = parse_int(label)
    if page_count is None or page_count < 1:
        raise ListParseError(f"Unexpected pagination label {label!r}")
    return page_count


def _count_from_watchlist(soup: BeautifulSoup) -> Optional[int]:
    node = soup.select_one("span.js-watchlist-count")
    if node is None:
        return None
    return parse_count(node.get_text())


def _count_from_meta_description(soup: BeautifulSoup) -> Optional[int]:
    node = soup.select_one('meta[name="description"]')
    if node is None:
        return None
    content = str(node.get("content") or "")
    if not content.startswith(META_DESCRIPTION_PREFIX):
        return None
    return parse_count(content[:META_DESCRIPTION_SCAN_CHARS])


# Tried in order; the first one returning a number wins.
MOVIE_COUNT_EXTRACTORS: Tuple[Callable[[BeautifulSoup], Optional[int]], ...] = (
    _count_from_watchlist,
    _count_from_meta_description,
)


def _movie_count(soup: BeautifulSoup, page_count: int) -> int:
    for extractor in MOVIE_COUNT_EXTRACTORS:
        value = extractor(soup)
        if value is not None:
            return value
    return len(_film_nodes(soup)) * page_count


def _image_url(soup: BeautifulSoup) -> str:
    node = soup.select_one("a.avatar img")
    if node is None:
        return ""
    src = str(node.get("src") or "").strip()
    if not src.startswith(AVATAR_URL_PREFIX):
        return ""
    return AVATAR_SIZE_RE.sub(AVATAR_FULL_SIZE, src)


def parse_page_count(html: str) -> int:
    return _page_count(_soup(html))


def parse_movie_count(html: str, page_count: int) -> int:
    """Movies in the list, estimated from the first page when not published."""
    return _movie_count(_soup(html), page_count)


def parse_image_url(html: str) -> str:
    return _image_url(_soup(html))


def parse_list_meta(html: str) -> ListMeta:
    soup = _soup(html)
    page_count = _page_count(soup)
    return ListMeta(
        page_count=page_count,
        movie_count=_movie_count(soup, page_count),
        image_url=_image_url(soup),
    )


def _detail_path(node: Any) -> str:
    for attribute in DETAIL_LINK_ATTRIBUTES:
        value = str(node.get(attribute) or "").strip()
        if value:
            return value
    slug = str(node.get("data-film-slug") or "").strip().strip("/")
    if slug:
        return f"/film/{slug}/"
    return ""


def parse_movie_stubs(html: str) -> List[MovieStub]:
    stubs: List[MovieStub] = []
    for node in _film_nodes(_soup(html)):
        letterboxd_id = parse_int(node.get("data-film-id"))
        if letterboxd_id is None:
            continue
        stubs.append(MovieStub(letterboxd_id=letterboxd_id, detail_path=_detail_path(node)))
    return stubs


def parse_external_ids(html: str) -> Optional[ExternalIds]:
    """TMDB and IMDb ids of a film page, or ``None`` when the TMDB id is missing."""
    soup = _soup(html)
    body = soup.find("body", attrs={"data-tmdb-id": True})
    if body is None:
        return None
    tmdb_id = str(body.get("data-tmdb-id") or "").strip()
    if not tmdb_id:
        return None

    imdb_id: Optional[str] = None
    link = soup.select_one('a[data-track-action="IMDb"]')
    if link is not None:
        match = IMDB_TITLE_RE.search(str(link.get("href") or ""))
        if match:
            imdb_id = match.group(1)
    return ExternalIds(tmdb_id=tmdb_id, imdb_id=imdb_id)


class LetterboxdFetcher:
    """HTTP session for one run: robots.txt policy, user agent and request permits."""

    def __init__(
        self,
        *,
        base_url: str = "https://letterboxd.com",
        timeout_seconds: int = 20,
        user_agent: Optional[str] = None,
        stop_event: Optional[asyncio.Event] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent or build_user_agent()
        self.stop_event = stop_event
        self.session = session if session is not None else requests.Session()
        self._permits = asyncio.Semaphore(MAX_CONCURRENT_REQUESTS)
        self._policy: Optional[Protego] = None
        self._policy_lock = asyncio.Lock()

        self.in_flight = 0
        self.peak_in_flight = 0
        self.requests_made = 0

    async def __aenter__(self) -> "LetterboxdFetcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def _stop_requested(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    async def _send(self, url: str) -> Optional[requests.Response]:
        async with self._permits:
            if self._stop_requested():
                return None
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            self.requests_made += 1
            try:
                return await asyncio.to_thread(
                    self.session.get,
                    url,
                    headers={"User-Agent": self.user_agent},
                    timeout=self.timeout_seconds,
                )
            finally:
                self.in_flight -= 1

    async def crawl_policy(self) -> Protego:
        if self._policy is not None:
            return self._policy
        async with self._policy_lock:
            if self._policy is None:
                self._policy = await self._load_crawl_policy()
        return self._policy

    async def _load_crawl_policy(self) -> Protego:
        robots_url = f"{self.base_url}/robots.txt"
        try:
            response = await self._send(robots_url)
        except requests.RequestException as exc:
            LOGGER.warning("Could not fetch %s, assuming crawling is allowed: %s", robots_url, exc)
            return Protego.parse(ALLOW_ALL_ROBOTS)

        if response is None:
            return Protego.parse(ALLOW_ALL_ROBOTS)
        if response.status_code in (401, 403):
            LOGGER.warning("%s returned %s, not scraping anything", robots_url, response.status_code)
            return Protego.parse(DISALLOW_ALL_ROBOTS)
        if 400 <= response.status_code < 500:
            return Protego.parse(ALLOW_ALL_ROBOTS)
        if not 200 <= response.status_code < 300:
            LOGGER.warning(
                "%s returned %s, assuming crawling is allowed",
                robots_url,
                response.status_code,
            )
            return Protego.parse(ALLOW_ALL_ROBOTS)
        return Protego.parse(response.text or "")

    async def fetch(self, url: str) -> Optional[str]:
        if self._stop_requested():
            LOGGER.debug("Stop requested, not fetching %s", url)
            return None

        policy = await self.crawl_policy()
        if not policy.can_fetch(url, USER_AGENT_TOKEN):
            LOGGER.warning("Not allowed to scrape URL %s according to robots.txt", url)
            return None

        try:
            response = await self._send(url)
        except requests.RequestException as exc:
            LOGGER.error("Could not fetch HTML from %s: %s", url, exc)
            return None
        if response is None:
            return None
        if not 200 <= response.status_code < 300:
            LOGGER.error("Could not fetch HTML from %s: HTTP %s", url, response.status_code)
            return None
        return response.text


ProgressCallback = Callable[[float], None]


class ProgressTracker:
    def __init__(self, report: ProgressCallback):
        self._report = report
        self._lock = asyncio.Lock()
        self.total = 0
        self.done = 0
        self.last_reported = 0.0

    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(100.0, self.done / self.total * 100)

    def reset(self, total: int) -> None:
        self.total = max(0, int(total))
        self.done = 0
        self.last_reported = 0.0
        self._emit(0.0)

    async def advance(self) -> None:
        async with self._lock:
            self.done += 1
            self._emit(self.percent())

    def finish(self) -> None:
        self._emit(100.0)

    def _emit(self, value: float) -> None:
        # Estimates can undershoot; never let the reported value go backwards.
        value = max(self.last_reported, value)
        self.last_reported = value
        try:
            self._report(value)
        except Exception:
            LOGGER.exception("Progress callback failed")


class JellyfinClient:
    """Library inventory and collection store backed by the Jellyfin REST API."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_seconds: int = 30,
        user_id: str = "",
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.user_id = user_id

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f'MediaBrowser Token="{self.api_key}"',
            "Accept": "application/json",
            "User-Agent": f"{USER_AGENT_TOKEN}/{__version__}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        url = f"{self.base_url}{path}"
        try:
            raw_resp = await asyncio.to_thread(
                requests.request,
                method,
                url,
                params=params,
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise HostAPIError(f"{method} {path} failed: {exc}") from exc

        data: Any = None
        text = raw_resp.text or ""
        if text:
            try:
                data = raw_resp.json()
            except ValueError:
                data = None
        response = APIResponse(
            status=raw_resp.status_code,
            headers={str(k).lower(): str(v) for k, v in raw_resp.headers.items()},
            data=data,
            text=text,
        )
        if not response.ok:
            compact = " ".join(text.split())[:180]
            raise HostAPIError(f"{method} {path} returned {response.status}: {compact}")
        return response

    async def _get_items(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        if self.user_id:
            params = {**params, "userId": self.user_id}
        response = await self._request("GET", "/Items", params=params)
        data = response.data if isinstance(response.data, dict) else {}
        return [item for item in data.get("Items") or [] if isinstance(item, dict)]

    @staticmethod
    def _to_movie(item: Dict[str, Any]) -> LibraryMovie:
        provider_ids = {
            str(key).lower(): str(value).strip()
            for key, value in (item.get("ProviderIds") or {}).items()
            if value
        }
        return LibraryMovie(
            item_id=str(item.get("Id")),
            tmdb_id=provider_ids.get("tmdb") or None,
            imdb_id=provider_ids.get("imdb") or None,
            name=str(item.get("Name") or ""),
        )

    async def get_movies(self) -> List[LibraryMovie]:
        items = await self._get_items(
            {"IncludeItemTypes": "Movie", "Recursive": "true", "Fields": "ProviderIds"}
        )
        return [self._to_movie(item) for item in items]

    async def find_collection(self, name: str) -> Optional[Collection]:
        items = await self._get_items({"IncludeItemTypes": "BoxSet", "Recursive": "true"})
        for item in items:
            if item.get("Name") == name and item.get("Id"):
                return Collection(collection_id=str(item["Id"]), name=name)
        return None

    async def create_collection(self, name: str) -> Collection:
        response = await self._request("POST", "/Collections", params={"Name": name})
        data = response.data if isinstance(response.data, dict) else {}
        collection_id = data.get("Id")
        if not collection_id:
            raise HostAPIError(f"Creating collection {name!r} returned no id")
        return Collection(collection_id=str(collection_id), name=name)

    async def add_image(self, collection: Collection, image_url: str) -> None:
        await self._request(
            "POST",
            f"/Items/{collection.collection_id}/RemoteImages/Download",
            params={"Type": "Primary", "ImageUrl": image_url},
        )

    async def get_members(self, collection: Collection) -> List[LibraryMovie]:
        items = await self._get_items(
            {"ParentId": collection.collection_id, "Fields": "ProviderIds"}
        )
        return [self._to_movie(item) for item in items]

    async def add_members(self, collection_id: str, item_ids: Sequence[str]) -> None:
        for batch in chunks(list(item_ids), JELLYFIN_ID_CHUNK_SIZE):
            await self._request(
                "POST", f"/Collections/{collection_id}/Items", params={"Ids": ",".join(batch)}
            )

    async def remove_members(self, collection_id: str, item_ids: Sequence[str]) -> None:
        for batch in chunks(list(item_ids), JELLYFIN_ID_CHUNK_SIZE):
            await self._request(
                "DELETE", f"/Collections/{collection_id}/Items", params={"Ids": ",".join(batch)}
            )


def movie_matches(movie: LibraryMovie, tmdb_ids: Set[str], imdb_ids: Set[str]) -> bool:
    if movie.tmdb_id and movie.tmdb_id in tmdb_ids:
        return True
    return bool(movie.imdb_id and movie.imdb_id in imdb_ids)


class CollectionSync:
    def __init__(
        self,
        *,
        lists: Sequence[ListConfig],
        library: Any,
        collections: Any,
        cache: IdCache,
        fetcher: Any,
    ):
        self.lists = list(lists)
        self.library = library
        self.collections = collections
        self.cache = cache
        self.fetcher = fetcher
        self._library_movies: List[LibraryMovie] = []
        self._stop_event: Optional[asyncio.Event] = None

    def _stop_requested(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def update_collections(
        self,
        progress: ProgressCallback,
        stop_event: Optional[asyncio.Event] = None,
    ) -> SyncRunResult:
        """Scrape every configured list and reconcile its collection."""
        self._stop_event = stop_event
        tracker = ProgressTracker(progress)
        result = SyncRunResult(lists_configured=len(self.lists))

        if not self.lists:
            LOGGER.warning("No Letterboxd lists configured, nothing to update")
            return result

        try:
            library = await self.library.get_movies()
        except HostAPIError as exc:
            LOGGER.error("Could not read the movies in the library: %s", exc)
            return result
        self._library_movies = [movie for movie in library if movie.tmdb_id or movie.imdb_id]
        LOGGER.info(
            "Library has %s movies with a TMDB or IMDb id", len(self._library_movies)
        )

        infos = await asyncio.gather(*(self._get_list_info(entry) for entry in self.lists))
        list_infos = [info for info in infos if info is not None]
        result.lists_resolved = len(list_infos)
        if not list_infos:
            LOGGER.warning("Could not get information about any configured lists")
            return result

        result.movies_estimated = sum(info.movie_count for info in list_infos)
        tracker.reset(result.movies_estimated)

        outcomes = await asyncio.gather(
            *(self._update_collection_safely(info, tracker) for info in list_infos)
        )
        for outcome in outcomes:
            if outcome is None:
                continue
            added, removed = outcome
            result.lists_updated += 1
            result.movies_added += added
            result.movies_removed += removed

        if self._stop_requested():
            LOGGER.info(
                "Stop requested, %s of %s collections were updated",
                result.lists_updated,
                len(list_infos),
            )
            result.interrupted = True
            return result

        tracker.finish()
        return result

    async def _get_list_info(self, entry: ListConfig) -> Optional[ListInfo]:
        LOGGER.info('Scraping list "%s" (%s)', entry.name, entry.url)
        if not is_letterboxd_url(entry.url):
            LOGGER.warning("Invalid Letterboxd URL %s, skipping this list", entry.url)
            return None

        try:
            html = await self.fetcher.fetch(entry.url)
            if html is None:
                LOGGER.warning(
                    "Could not fetch the initial page for URL %s, skipping this list", entry.url
                )
                return None
            meta = parse_list_meta(html)
        except ListParseError as exc:
            LOGGER.warning(
                'Could not determine the number of pages for list "%s", skipping this list: %s',
                entry.name,
                exc,
            )
            return None
        except Exception:
            LOGGER.exception('Unexpected failure reading list "%s", skipping this list', entry.name)
            return None

        LOGGER.debug(
            'List "%s": %s pages, ~%s movies', entry.name, meta.page_count, meta.movie_count
        )
        return ListInfo(
            name=entry.name,
            url=normalize_list_url(entry.url),
            page_count=meta.page_count,
            movie_count=meta.movie_count,
            image_url=meta.image_url,
            first_page=html,
        )

    async def _update_collection_safely(
        self, info: ListInfo, tracker: ProgressTracker
    ) -> Optional[Tuple[int, int]]:
        try:
            return await self._update_collection(info, tracker)
        except Exception:
            LOGGER.exception('Updating collection "%s" failed', info.name)
            return None

    async def _update_collection(
        self, info: ListInfo, tracker: ProgressTracker
    ) -> Optional[Tuple[int, int]]:
        collection = await self._get_or_create_collection(info)
        resolved, unavailable = await self._scrape_list(info, tracker)

        if self._stop_requested():
            LOGGER.info('Stop requested, not updating collection "%s"', info.name)
            return None

        tmdb_ids = {ids.tmdb_id for ids in resolved}
        imdb_ids = {ids.imdb_id for ids in resolved if ids.imdb_id}

        members = await self.collections.get_members(collection)
        member_ids = {member.item_id for member in members}

        to_remove: List[LibraryMovie] = []
        if unavailable:
            LOGGER.warning(
                'List "%s" was not fully scraped (%s pages or films unavailable), '
                "not removing anything from the collection",
                info.name,
                unavailable,
            )
        else:
            to_remove = [
                member for member in members if not movie_matches(member, tmdb_ids, imdb_ids)
            ]
        to_add: List[str] = []
        for movie in self._library_movies:
            if movie.item_id in member_ids:
                continue
            if movie_matches(movie, tmdb_ids, imdb_ids):
                to_add.append(movie.item_id)
                member_ids.add(movie.item_id)

        if to_remove:
            for member in to_remove:
                LOGGER.info(
                    'Removing %s (%s) from collection "%s"',
                    member.name or member.item_id,
                    member.item_id,
                    info.name,
                )
            await self.collections.remove_members(
                collection.collection_id, [member.item_id for member in to_remove]
            )
        if to_add:
            await self.collections.add_members(collection.collection_id, to_add)

        LOGGER.info(
            'Collection "%s" updated: %s films in list, %s added, %s removed',
            info.name,
            len(resolved),
            len(to_add),
            len(to_remove),
        )
        return len(to_add), len(to_remove)

    async def _get_or_create_collection(self, info: ListInfo) -> Collection:
        existing = await self.collections.find_collection(info.name)
        if existing is not None:
            return existing

        LOGGER.info('Creating collection "%s"', info.name)
        collection = await self.collections.create_collection(info.name)
        if info.image_url:
            try:
                await self.collections.add_image(collection, info.image_url)
            except HostAPIError as exc:
                LOGGER.warning('Could not set the image of collection "%s": %s', info.name, exc)
        return collection

    async def _scrape_list(
        self, info: ListInfo, tracker: ProgressTracker
    ) -> Tuple[Set[ExternalIds], int]:
        """Resolved ids of the list and the number of pages or films that were unavailable."""
        pages = await asyncio.gather(
            *(
                self._scrape_page(info, page_number, tracker)
                for page_number in range(1, info.page_count + 1)
            )
        )
        resolved: Set[ExternalIds] = set()
        unavailable = 0
        for page_ids, page_unavailable in pages:
            resolved.update(page_ids)
            unavailable += page_unavailable
        return resolved, unavailable

    async def _scrape_page(
        self, info: ListInfo, page_number: int, tracker: ProgressTracker
    ) -> Tuple[List[ExternalIds], int]:
        url = f"{info.url}/page/{page_number}/"
        if page_number == 1:
            html: Optional[str] = info.first_page
        else:
            LOGGER.info("Scraping URL %s", url)
            html = await self.fetcher.fetch(url)
            if html is None:
                if not self._stop_requested():
                    LOGGER.warning("Could not fetch page %s", url)
                return [], 1

        stubs = parse_movie_stubs(html)
        results = await asyncio.gather(
            *(self._resolve_stub(stub, url, tracker) for stub in stubs)
        )
        resolved = [ids for ids, _ in results if ids is not None]
        return resolved, sum(1 for _, complete in results if not complete)

    async def _resolve_stub(
        self, stub: MovieStub, page_url: str, tracker: ProgressTracker
    ) -> Tuple[Optional[ExternalIds], bool]:
        # The flag is False when the film could not be looked at, as opposed to
        # a film page that was read but carries no TMDB id.
        try:
            return await self._resolve_ids(stub, page_url), True
        except PageUnavailableError as exc:
            if not self._stop_requested():
                LOGGER.warning("Could not fetch page %s", exc)
            return None, False
        except Exception:
            LOGGER.exception(
                "%s: resolving Letterboxd ID %s failed", page_url, stub.letterboxd_id
            )
            return None, False
        finally:
            await tracker.advance()

    def _cached_ids(self, letterboxd_id: int) -> Optional[ExternalIds]:
        try:
            return self.cache.lookup(letterboxd_id)
        except CacheStorageError as exc:
            LOGGER.warning("Id cache lookup failed, fetching instead: %s", exc)
            return None

    def _store_ids(self, letterboxd_id: int, ids: ExternalIds) -> None:
        try:
            self.cache.upsert(letterboxd_id, ids.tmdb_id, ids.imdb_id)
        except CacheStorageError as exc:
            LOGGER.error("Could not cache ids for Letterboxd ID %s: %s", letterboxd_id, exc)

    async def _resolve_ids(self, stub: MovieStub, page_url: str) -> Optional[ExternalIds]:
        LOGGER.debug("%s: Extracted Letterboxd ID %s", page_url, stub.letterboxd_id)

        cached = self._cached_ids(stub.letterboxd_id)
        if cached is not None:
            LOGGER.debug(
                "%s: Letterboxd ID %s already in cache, TMDB: %s IMDb: %s",
                page_url,
                stub.letterboxd_id,
                cached.tmdb_id,
                cached.imdb_id,
            )
            return cached

        LOGGER.debug("%s: Letterboxd ID %s not yet in cache", page_url, stub.letterboxd_id)
        if not stub.detail_path or self._stop_requested():
            return None

        movie_url = urljoin(self.fetcher.base_url + "/", stub.detail_path)
        html = await self.fetcher.fetch(movie_url)
        if html is None:
            raise PageUnavailableError(movie_url)

        ids = parse_external_ids(html)
        if ids is None:
            LOGGER.debug("%s: no TMDB id found, skipping this film", movie_url)
            return None

        self._store_ids(stub.letterboxd_id, ids)
        LOGGER.debug(
            "%s: Letterboxd ID %s extracted IDs, TMDB: %s IMDb: %s",
            page_url,
            stub.letterboxd_id,
            ids.tmdb_id,
            ids.imdb_id,
        )
        return ids


class RunDashboard:
    """Terminal progress view rendered with rich."""

    LABEL_WIDTH = 18
    BAR_WIDTH = 40

    def __init__(
        self,
        *,
        events: RecentEvents,
        event_lines: int = 8,
        refresh_seconds: float = 0.5,
    ):
        self.events = events
        self.event_lines = max(3, int(event_lines))
        self.refresh_seconds = max(0.1, float(refresh_seconds))
        self.started_at = now_epoch()

        self.run_index = 0
        self.phase = "Idle"
        self.percent = 0.0
        self.run_started_at = 0
        self.next_run_at = 0
        self.last_result: Optional[SyncRunResult] = None

    def begin_run(self) -> None:
        self.run_index += 1
        self.phase = "Refreshing"
        self.percent = 0.0
        self.run_started_at = now_epoch()

    def report_progress(self, percent: float) -> None:
        self.percent = max(0.0, min(100.0, float(percent)))

    def complete_run(self, result: Optional[SyncRunResult], next_run_at: int = 0) -> None:
        self.last_result = result
        self.next_run_at = next_run_at
        self.phase = "Waiting" if next_run_at else "Done"

    @staticmethod
    def _format_duration(seconds: int) -> str:
        hours, rem = divmod(max(0, int(seconds)), 3600)
        minutes, secs = divmod(rem, 60)
        if hours > 0:
            return f"{hours:02d}:{minutes:02d}:{secs:02d}"
        return f"{minutes:02d}:{secs:02d}"

    def _render_progress_panel(self) -> Panel:
        table = Table.grid(expand=True, padding=(0, 1))
        table.add_column(style="bold cyan", width=self.LABEL_WIDTH, no_wrap=True)
        table.add_column(ratio=1)

        bar = ProgressBar(total=100.0, completed=self.percent, width=self.BAR_WIDTH)
        table.add_row("Progress", Group(bar, Text(f"{self.percent:6.2f}%")))
        if self.run_started_at:
            table.add_row("Run started", to_iso(self.run_started_at))

        result = self.last_result
        if result is not None:
            table.add_row(
                "Lists",
                f"{result.lists_updated}/{result.lists_configured} updated"
                + (" (interrupted)" if result.interrupted else ""),
            )
            table.add_row(
                "Movies",
                f"~{result.movies_estimated} in lists, "
                f"{result.movies_added} added, {result.movies_removed} removed",
            )
        if self.next_run_at:
            table.add_row("Next run", to_iso(self.next_run_at))
        return Panel(table, title="Refresh", border_style="cyan", title_align="left")

    def _render_events_panel(self) -> Panel:
        table = Table.grid(expand=True)
        table.add_column(style="bold yellow", no_wrap=True, width=24)
        table.add_column(no_wrap=True, overflow="crop", ratio=1)

        entries = self.events.snapshot()[-self.event_lines :]
        for entry in reversed(entries):
            level = "WARN" if entry.level == "WARNING" else entry.level
            suffix = f" x{entry.count}" if entry.count > 1 else ""
            table.add_row(f"{to_iso(entry.timestamp)} {level}", f"{entry.message}{suffix}")
        for _ in range(self.event_lines - len(entries)):
            table.add_row("-", "-")
        return Panel(table, title="Events", border_style="yellow", title_align="left")

    def render(self) -> Group:
        uptime = self._format_duration(now_epoch() - self.started_at)
        header = Text(
            f"letterboxd-collections | uptime={uptime} | run={self.run_index} | phase={self.phase}",
            style="bold",
        )
        return Group(header, self._render_progress_panel(), self._render_events_panel())

    async def run(self, stop_event: asyncio.Event) -> None:
        with Live(self.render(), auto_refresh=False, transient=False, screen=False) as live:
            while not stop_event.is_set():
                live.update(self.render(), refresh=True)
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.refresh_seconds)
                except asyncio.TimeoutError:
                    pass
            live.update(self.render(), refresh=True)


class RefreshCollectionsTask:
    NAME = "Refresh collections"
    KEY = "LetterboxdCollectionsRefreshTask"
    DESCRIPTION = "Refreshes the configured Letterboxd lists and updates the collections in Jellyfin"
    CATEGORY = "Letterboxd Collections"
    DEFAULT_INTERVAL_HOURS = 24

    def __init__(self, *, config: Dict[str, Any], cache: IdCache, host: Any):
        self.config = config
        self.cache = cache
        self.host = host

    async def execute(
        self, progress: ProgressCallback, stop_event: asyncio.Event
    ) -> SyncRunResult:
        LOGGER.info("Starting refresh task")
        letterboxd_cfg = self.config["letterboxd"]
        async with LetterboxdFetcher(
            base_url=letterboxd_cfg["base_url"],
            timeout_seconds=int(letterboxd_cfg["timeout_seconds"]),
            user_agent=build_user_agent(letterboxd_cfg.get("contact_url", "")),
            stop_event=stop_event,
        ) as fetcher:
            sync = CollectionSync(
                lists=build_list_configs(self.config),
                library=self.host,
                collections=self.host,
                cache=self.cache,
                fetcher=fetcher,
            )
            result = await sync.update_collections(progress, stop_event)
            LOGGER.info(
                "Refresh task finished: lists=%s/%s added=%s removed=%s requests=%s",
                result.lists_updated,
                result.lists_configured,
                result.movies_added,
                result.movies_removed,
                fetcher.requests_made,
            )
        return result


def configure_logging(config: Dict[str, Any]) -> LoggingRuntime:
    runtime_cfg = config.get("runtime", {})
    level = getattr(logging, str(runtime_cfg.get("log_level", "INFO")).upper(), logging.INFO)

    log_path = Path(str(runtime_cfg.get("log_file_path", "logs/letterboxd_collections.log"))).expanduser()
    if not log_path.is_absolute():
        log_path = (Path.cwd() / log_path).resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    console_mode = str(runtime_cfg.get("console_mode", "progress")).strip().lower()
    events = RecentEvents(
        max_lines=int(runtime_cfg.get("dashboard_event_lines", 8)),
        dedupe_window_seconds=int(runtime_cfg.get("dashboard_event_dedupe_window_seconds", 30)),
        max_message_length=int(runtime_cfg.get("dashboard_event_max_message_length", 160)),
    )
    live_active = threading.Event()

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(level)

    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=max(1024, int(runtime_cfg.get("log_file_max_bytes", 10485760))),
        backupCount=max(0, int(runtime_cfg.get("log_file_backup_count", 5))),
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)

    console_handler = QuietWhileLiveHandler(
        live_active=live_active,
        allow_while_live=console_mode == "raw",
    )
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(RecentEventsHandler(events=events, min_level=logging.WARNING))

    logging.captureWarnings(True)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return LoggingRuntime(live_active=live_active, events=events, log_file_path=log_path)


async def run_app(
    config: Dict[str, Any],
    logging_runtime: LoggingRuntime,
    config_path: Optional[Path] = None,
) -> None:
    cache_path = Path(config["runtime"]["cache_path"]).expanduser().resolve()
    cache = IdCache(cache_path)
    stop_event = asyncio.Event()
    dashboard_task: Optional[asyncio.Task] = None

    try:
        jellyfin_cfg = config["jellyfin"]
        host = JellyfinClient(
            base_url=jellyfin_cfg["base_url"],
            api_key=jellyfin_cfg["api_key"],
            timeout_seconds=int(jellyfin_cfg["timeout_seconds"]),
            user_id=jellyfin_cfg.get("user_id", ""),
        )
        task = RefreshCollectionsTask(config=config, cache=cache, host=host)

        loop = asyncio.get_running_loop()

        def _signal_stop() -> None:
            if not stop_event.is_set():
                LOGGER.info("Stop signal received. Finishing in-flight requests...")
                stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _signal_stop)
            except NotImplementedError:
                # Windows event loops may not support this.
                pass

        LOGGER.info("Id cache: %s (%s entries)", cache_path, cache.count())
        LOGGER.info("Log file: %s", logging_runtime.log_file_path)
        LOGGER.info(
            "Task %r (%s): run_mode=%s, refresh_interval_hours=%s, lists=%s",
            task.NAME,
            task.KEY,
            config["runtime"]["run_mode"],
            config["runtime"]["refresh_interval_hours"],
            len(config["lists"]),
        )

        dashboard: Optional[RunDashboard] = None
        if config["runtime"]["console_mode"] == "progress":
            dashboard = RunDashboard(
                events=logging_runtime.events,
                event_lines=int(config["runtime"]["dashboard_event_lines"]),
            )
            logging_runtime.live_active.set()
            dashboard_task = asyncio.create_task(dashboard.run(stop_event), name="dashboard")

        def _report(percent: float) -> None:
            if dashboard is not None:
                dashboard.report_progress(percent)
            LOGGER.debug("Progress: %.1f%%", percent)

        while not stop_event.is_set():
            if dashboard is not None:
                dashboard.begin_run()
            result: Optional[SyncRunResult] = None
            try:
                result = await task.execute(_report, stop_event)
            except Exception:
                LOGGER.exception("Refresh task failed")

            if task.config["runtime"]["run_mode"] == "once" or stop_event.is_set():
                if dashboard is not None:
                    dashboard.complete_run(result)
                break

            interval = int(task.config["runtime"]["refresh_interval_hours"]) * 3600
            next_run_at = now_epoch() + interval
            if dashboard is not None:
                dashboard.complete_run(result, next_run_at)
            LOGGER.info("Next refresh at %s", to_iso(next_run_at))
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

            if config_path is not None and not stop_event.is_set():
                try:
                    task.config = load_config(config_path)
                except Exception:
                    LOGGER.exception("Could not reload config, keeping the previous lists")

    finally:
        stop_event.set()
        if dashboard_task is not None:
            await asyncio.gather(dashboard_task, return_exceptions=True)
        logging_runtime.live_active.clear()
        cache.close()


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sync Letterboxd lists into Jellyfin collections",
    )
    parser.add_argument(
        "--config",
        default="config.json",
        help="Path to config JSON file (default: config.json)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single refresh and exit, regardless of runtime.run_mode",
    )
    return parser


def main() -> int:
    parser = build_arg_parser()
    args = parser.parse_args()

    config_path = Path(args.config).expanduser().resolve()

    try:
        config = load_config(config_path)
    except Exception as exc:
        print(f"[FATAL] Could not load config: {exc}")
        return 1
    if args.once:
        config["runtime"]["run_mode"] = "once"

    logging_runtime = configure_logging(config)

    try:
        asyncio.run(run_app(config, logging_runtime, config_path=config_path))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user")
        return 0
    except Exception:
        LOGGER.exception("Fatal runtime error")
        return 1
    finally:
        LOGGER.info("Log file: %s", logging_runtime.log_file_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

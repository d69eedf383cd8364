import asyncio
import threading
import time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from letterboxd_collections import Collection, LibraryMovie

BASE_URL = "https://letterboxd.com"
AVATAR_48 = "https://a.ltrbxd.com/resized/avatar/upload/7/6/5/4/shard/avtr-0-48-0-48-crop.jpg?v=1"


def list_page_html(
    films: Iterable[Tuple[str, str]] = (),
    *,
    pages: Optional[Sequence[str]] = None,
    current_page: Optional[str] = None,
    watchlist_count: Optional[str] = None,
    description: Optional[str] = None,
    avatar_src: Optional[str] = None,
) -> str:
    """Markup shaped like a Letterboxd list page.

    ``films`` holds ``(data-film-id, data-target-link)`` pairs. The pagination
    label equal to ``current_page`` is rendered without a link.
    """
    head = ""
    if description is not None:
        head = f'<meta name="description" content="{description}">'
    parts = [f"<html><head>{head}</head><body>"]
    if avatar_src is not None:
        parts.append(f'<a class="avatar -a24" href="/someone/"><img src="{avatar_src}" alt=""></a>')
    if watchlist_count is not None:
        parts.append(f'<span class="js-watchlist-count">{watchlist_count}</span>')
    parts.append('<ul class="poster-list">')
    for film_id, link in films:
        parts.append(
            f'<li class="poster-container"><div class="react-component poster" '
            f'data-film-id="{film_id}" data-target-link="{link}"></div></li>'
        )
    parts.append("</ul>")
    if pages is not None:
        items = "".join(
            f'<li class="paginate-page paginate-current"><span>{label}</span></li>'
            if label == current_page
            else f'<li class="paginate-page"><a href="#">{label}</a></li>'
            for label in pages
        )
        parts.append(f'<div class="paginate-pages"><ul>{items}</ul></div>')
    parts.append("</body></html>")
    return "".join(parts)


def film_page_html(tmdb_id: Optional[str] = None, imdb_href: Optional[str] = None) -> str:
    body_attr = f' data-tmdb-id="{tmdb_id}"' if tmdb_id is not None else ""
    link = ""
    if imdb_href is not None:
        link = f'<p class="text-link"><a href="{imdb_href}" data-track-action="IMDb">IMDb</a></p>'
    return f'<html><head><title>Film</title></head><body class="film"{body_attr}>{link}</body></html>'


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = ""):
        self.status_code = status_code
        self.text = text


class FakeSession:
    """Stands in for ``requests.Session``; ``get`` runs in worker threads."""

    def __init__(
        self,
        pages: Optional[Dict[str, FakeResponse]] = None,
        *,
        robots: str = "",
        delay: float = 0.0,
        errors: Optional[Dict[str, Exception]] = None,
    ):
        self.pages = dict(pages or {})
        self.pages.setdefault(f"{BASE_URL}/robots.txt", FakeResponse(200, robots))
        self.delay = delay
        self.errors = dict(errors or {})
        self.calls: List[str] = []
        self.headers_seen: List[Dict[str, str]] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.closed = False
        self._lock = threading.Lock()

    def get(self, url, headers=None, timeout=None):
        with self._lock:
            self.calls.append(url)
            self.headers_seen.append(dict(headers or {}))
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if url in self.errors:
                raise self.errors[url]
            return self.pages.get(url, FakeResponse(404, "not found"))
        finally:
            with self._lock:
                self.in_flight -= 1

    def close(self):
        self.closed = True


class FakeFetcher:
    """Serves canned HTML by URL, recording what was requested."""

    def __init__(self, pages: Dict[str, str], base_url: str = BASE_URL):
        self.pages = pages
        self.base_url = base_url
        self.requested: List[str] = []

    async def fetch(self, url: str) -> Optional[str]:
        self.requested.append(url)
        await asyncio.sleep(0)
        return self.pages.get(url)


class FakeHost:
    """In-memory library and collection store."""

    def __init__(self, movies: Sequence[LibraryMovie] = ()):
        self.movies = list(movies)
        self.collections: Dict[str, Collection] = {}
        self.members: Dict[str, List[LibraryMovie]] = {}
        self.images: Dict[str, str] = {}
        self.added: List[Tuple[str, List[str]]] = []
        self.removed: List[Tuple[str, List[str]]] = []

    def add_collection(self, name: str, members: Sequence[LibraryMovie] = ()) -> Collection:
        collection = Collection(collection_id=f"box-{len(self.collections) + 1}", name=name)
        self.collections[name] = collection
        self.members[collection.collection_id] = list(members)
        return collection

    def member_ids(self, name: str) -> List[str]:
        collection = self.collections[name]
        return sorted(member.item_id for member in self.members[collection.collection_id])

    async def get_movies(self) -> List[LibraryMovie]:
        return list(self.movies)

    async def find_collection(self, name: str) -> Optional[Collection]:
        return self.collections.get(name)

    async def create_collection(self, name: str) -> Collection:
        return self.add_collection(name)

    async def add_image(self, collection: Collection, image_url: str) -> None:
        self.images[collection.collection_id] = image_url

    async def get_members(self, collection: Collection) -> List[LibraryMovie]:
        return list(self.members[collection.collection_id])

    async def add_members(self, collection_id: str, item_ids: Sequence[str]) -> None:
        self.added.append((collection_id, list(item_ids)))
        by_id = {movie.item_id: movie for movie in self.movies}
        for item_id in item_ids:
            self.members[collection_id].append(by_id[item_id])

    async def remove_members(self, collection_id: str, item_ids: Sequence[str]) -> None:
        self.removed.append((collection_id, list(item_ids)))
        self.members[collection_id] = [
            member for member in self.members[collection_id] if member.item_id not in item_ids
        ]

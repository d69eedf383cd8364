import json

import pytest
import requests

import letterboxd_collections
from letterboxd_collections import Collection, HostAPIError, JellyfinClient, LibraryMovie


class RawResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.text = json.dumps(payload) if payload is not None else ""
        self.headers = {"Content-Type": "application/json"}
        self._payload = payload

    def json(self):
        return self._payload


@pytest.fixture
def recorded(monkeypatch):
    calls = []
    responses = []

    def fake_request(method, url, params=None, headers=None, timeout=None):
        calls.append({"method": method, "url": url, "params": params, "headers": headers})
        return responses.pop(0) if responses else RawResponse(204)

    monkeypatch.setattr(letterboxd_collections.requests, "request", fake_request)
    return calls, responses


def client():
    return JellyfinClient(base_url="http://jellyfin:8096/", api_key="secret")


@pytest.mark.asyncio
async def test_get_movies_reads_provider_ids(recorded):
    calls, responses = recorded
    responses.append(
        RawResponse(
            payload={
                "Items": [
                    {"Id": "a1", "Name": "The Matrix", "ProviderIds": {"Tmdb": "603", "Imdb": "tt0133093"}},
                    {"Id": "b2", "Name": "Home video", "ProviderIds": {}},
                    {"Id": "c3", "Name": "Lowercase", "ProviderIds": {"tmdb": "11", "imdb": ""}},
                ]
            }
        )
    )

    movies = await client().get_movies()

    assert movies == [
        LibraryMovie(item_id="a1", tmdb_id="603", imdb_id="tt0133093", name="The Matrix"),
        LibraryMovie(item_id="b2", name="Home video"),
        LibraryMovie(item_id="c3", tmdb_id="11", name="Lowercase"),
    ]
    assert calls[0]["url"] == "http://jellyfin:8096/Items"
    assert calls[0]["params"]["IncludeItemTypes"] == "Movie"
    assert calls[0]["headers"]["Authorization"] == 'MediaBrowser Token="secret"'


@pytest.mark.asyncio
async def test_find_collection_matches_exact_name(recorded):
    _, responses = recorded
    responses.append(
        RawResponse(payload={"Items": [{"Id": "x", "Name": "top 250"}, {"Id": "y", "Name": "Top 250"}]})
    )

    assert await client().find_collection("Top 250") == Collection(collection_id="y", name="Top 250")


@pytest.mark.asyncio
async def test_create_collection_returns_new_id(recorded):
    calls, responses = recorded
    responses.append(RawResponse(payload={"Id": "new-box"}))

    collection = await client().create_collection("Favourites")

    assert collection == Collection(collection_id="new-box", name="Favourites")
    assert calls[0]["method"] == "POST"
    assert calls[0]["params"] == {"Name": "Favourites"}


@pytest.mark.asyncio
async def test_membership_changes_are_batched(recorded):
    calls, _ = recorded
    ids = [f"id{i}" for i in range(150)]

    await client().add_members("box", ids)
    await client().remove_members("box", ids[:3])

    assert [call["method"] for call in calls] == ["POST", "POST", "DELETE"]
    assert calls[0]["url"] == "http://jellyfin:8096/Collections/box/Items"
    assert len(calls[0]["params"]["Ids"].split(",")) == 100
    assert len(calls[1]["params"]["Ids"].split(",")) == 50
    assert calls[2]["params"]["Ids"] == "id0,id1,id2"


@pytest.mark.asyncio
async def test_error_status_raises_host_error(recorded):
    _, responses = recorded
    responses.append(RawResponse(401, {"error": "unauthorized"}))

    with pytest.raises(HostAPIError, match="401"):
        await client().get_movies()


@pytest.mark.asyncio
async def test_transport_failure_raises_host_error(monkeypatch):
    def refuse(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(letterboxd_collections.requests, "request", refuse)

    with pytest.raises(HostAPIError, match="connection refused"):
        await client().get_members(Collection(collection_id="box", name="Box"))

from __future__ import annotations

from typing import Callable, Iterator, List

import httpx
import pytest

from core import data as dc
from tests.factories import RECORDS_URL, make_item


@pytest.fixture()
def sample_items() -> List[dict]:
    return [
        make_item(),
        make_item(sector="Environment", topic="gas", region="World", end_year=2021, intensity=12, impact=4, pestle="Economic", country="", source="WSJ"),
        make_item(topic="gas", intensity=0),
        make_item(sector="", topic="consumption"),
        make_item(sector="Energy", topic="consumption", end_year="", intensity=3, likelihood=4, relevance=1, impact=5, region="Europe"),
    ]


@pytest.fixture()
def mock_client_factory() -> Iterator[Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]]:
    clients: List[httpx.Client] = []

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    try:
        yield factory
    finally:
        for client in clients:
            client.close()


@pytest.fixture()
def queued_responses() -> List[httpx.Response]:
    """Responses served before the endpoint falls back to the sample records."""
    return []


@pytest.fixture()
def fetched_urls() -> List[str]:
    """URLs requested from the mock records endpoint, in order."""
    return []


@pytest.fixture()
def installed_store(
    sample_items: List[dict], queued_responses: List[httpx.Response], fetched_urls: List[str], mock_client_factory
) -> Iterator[dc.RecordStore]:
    responses = queued_responses

    def handler(request: httpx.Request) -> httpx.Response:
        fetched_urls.append(str(request.url))
        if responses:
            return responses.pop(0)
        return httpx.Response(200, json=sample_items)

    store = dc.RecordStore(RECORDS_URL, client=mock_client_factory(handler))
    previous = dc.get_store()
    dc.set_store(store)
    try:
        yield store
    finally:
        dc.set_store(previous)

"""Integration test fixtures.

Provides a fully wired AppState with in-memory SQLite, a respx-mocked GitHub
serving one small book, and a deterministic stand-in for the model endpoint.
The collection markup comes from tests/conftest.py.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import httpx
import pytest
import respx

from openstax_mcp.cache import Cache
from openstax_mcp.config import Settings
from openstax_mcp.fetcher import Fetcher
from openstax_mcp.state import AppState
from openstax_mcp.vector_index import VectorIndex

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

API = "https://api.github.com"
RAW = "https://raw.githubusercontent.com"
BOOK = "osbooks-college-physics-bundle"

MODULE_BODIES = {
    "m1": ("Physics: An Introduction", "Physics is the study of energy and force."),
    "m2": ("Vectors", "A vector has magnitude and direction. Add each vector tip to tail."),
    "m3": ("Motion", "Motion in one dimension. Motion is a change in position."),
}

REPOS = [
    {
        "name": BOOK,
        "html_url": f"https://github.com/openstax/{BOOK}",
        "description": "College Physics",
        "updated_at": "2026-03-01T00:00:00Z",
        "stargazers_count": 12,
    },
    {
        "name": "osbooks-fisica-universitaria-bundle",
        "html_url": "https://github.com/openstax/osbooks-fisica-universitaria-bundle",
        "description": None,
        "updated_at": "2026-02-01T00:00:00Z",
        "stargazers_count": 3,
    },
    {
        "name": "osbooks-biology-bundle",
        "html_url": "https://github.com/openstax/osbooks-biology-bundle",
        "description": "Biology 2e",
        "updated_at": "2026-01-01T00:00:00Z",
        "stargazers_count": 5,
    },
    {"name": "osbooks-template", "html_url": "https://github.com/openstax/osbooks-template"},
    {"name": "cnx-recipes", "html_url": "https://github.com/openstax/cnx-recipes"},
]


def module_xml(module_id: str) -> str:
    title, body = MODULE_BODIES[module_id]
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<document xmlns="http://cnx.rice.edu/cnxml" id="{module_id}">'
        f"<title>{title}</title><content><para>{body}</para></content></document>"
    )


def module_url(module_id: str, book: str = BOOK) -> str:
    return f"{RAW}/openstax/{book}/main/modules/{module_id}/index.cnxml"


class FakeModels:
    """Deterministic ModelProtocol: bag-of-words embeddings and a canned reply."""

    VOCABULARY = ("physics", "energy", "vector", "motion", "force")
    REPLY = "Problem 1:\nA ball is dropped.\n\nSolution 1:\nIt falls."

    def __init__(self) -> None:
        self.embedded: list[str] = []
        self.prompts: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.embedded.extend(texts)
        return [
            [text.lower().count(word) + 0.01 for word in self.VOCABULARY] for text in texts
        ]

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.REPLY


@pytest.fixture()
def github(collection_xml: str) -> Iterator[respx.MockRouter]:
    """Mocked GitHub API and raw host serving one complete book."""
    with respx.mock(assert_all_called=False) as router:
        router.get(f"{API}/orgs/openstax/repos?per_page=100&type=public", name="repos").mock(
            return_value=httpx.Response(200, json=REPOS)
        )
        collection_url = f"{RAW}/openstax/{BOOK}/main/collections/college-physics.collection.xml"
        router.get(f"{API}/repos/openstax/{BOOK}/contents/collections", name="collections").mock(
            return_value=httpx.Response(
                200,
                json=[
                    {"name": "README.md", "download_url": f"{RAW}/openstax/{BOOK}/README.md"},
                    {"name": "college-physics.collection.xml", "download_url": collection_url},
                ],
            )
        )
        router.get(collection_url, name="collection_xml").mock(
            return_value=httpx.Response(200, text=collection_xml)
        )
        for module_id in MODULE_BODIES:
            router.get(module_url(module_id), name=f"module_{module_id}").mock(
                return_value=httpx.Response(200, text=module_xml(module_id))
            )
        media_url = f"{RAW}/openstax/{BOOK}/main/modules/m1/media/Figure_01_01.jpg"
        router.get(f"{API}/repos/openstax/{BOOK}/contents/modules/m1/media", name="media_m1").mock(
            return_value=httpx.Response(
                200, json=[{"name": "Figure_01_01.jpg", "download_url": media_url}]
            )
        )
        router.get(url__startswith=f"{API}/repos/openstax/{BOOK}/contents/modules/").mock(
            return_value=httpx.Response(404)
        )
        router.get(f"{API}/repos/openstax/osbooks-missing/contents/collections").mock(
            return_value=httpx.Response(404)
        )
        router.get(f"{API}/repos/openstax/osbooks-empty/contents/collections").mock(
            return_value=httpx.Response(200, json=[{"name": "README.md", "download_url": None}])
        )
        router.get(url__startswith=f"{RAW}/openstax/{BOOK}/main/modules/").mock(
            return_value=httpx.Response(404)
        )
        yield router


@pytest.fixture()
def fake_models() -> FakeModels:
    return FakeModels()


@pytest.fixture()
async def app_state(github: respx.MockRouter, fake_models: FakeModels) -> AsyncIterator[AppState]:
    """Full AppState wired for integration tests."""
    async with (
        aiosqlite.connect(":memory:") as cache_db,
        aiosqlite.connect(":memory:") as vector_db,
    ):
        cache = Cache(cache_db)
        await cache.init_db()
        vector_index = VectorIndex(vector_db)
        await vector_index.init_db()

        settings = Settings()
        async with httpx.AsyncClient() as client:
            yield AppState(
                settings=settings,
                cache=cache,
                fetcher=Fetcher(client, settings.github),
                models=fake_models,
                vector_index=vector_index,
                http_client=client,
            )


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env dict for subprocess-based integration tests.

    Overrides any local openstax.yaml by forcing stdio transport and points
    both databases at an isolated tmp directory.
    """
    src_dir = Path(__file__).resolve().parents[2] / "src"
    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(src_dir), env.get("PYTHONPATH")]))
    env["OPENSTAX__SERVER__TRANSPORT"] = "stdio"
    env["OPENSTAX__CACHE__DB_PATH"] = str(tmp_path / "cache.db")
    env["OPENSTAX__SEARCH__DB_PATH"] = str(tmp_path / "vectors.db")
    env["OPENSTAX__GITHUB__API_URL"] = "http://127.0.0.1:1"
    return env

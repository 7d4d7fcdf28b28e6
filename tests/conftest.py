"""Shared test fixtures for the openstax-mcp test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import pytest

from openstax_mcp.cache import Cache
from openstax_mcp.vector_index import VectorIndex

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

COLLECTION_XML = """<?xml version="1.0" encoding="UTF-8"?>
<col:collection xmlns="http://cnx.rice.edu/collxml" xmlns:col="http://cnx.rice.edu/collxml"
    xmlns:md="http://cnx.rice.edu/mdml">
  <col:metadata>
    <md:title>College Physics</md:title>
    <md:license url="http://creativecommons.org/licenses/by/4.0/">Creative Commons Attribution License</md:license>
    <md:slug>college-physics</md:slug>
    <md:uuid>031da8d3-b525-429c-80cf-6c8ed997733a</md:uuid>
  </col:metadata>
  <col:content>
    <col:module document="m1"/>
    <col:subcollection>
      <md:title>Chapter 1: Introduction</md:title>
      <col:content>
        <col:module document="m2"/>
        <col:module document="m3"/>
      </col:content>
    </col:subcollection>
  </col:content>
</col:collection>
"""

MODULE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<document xmlns="http://cnx.rice.edu/cnxml" id="m2" module-id="m2">
  <title>Physics: An Introduction</title>
  <metadata xmlns:md="http://cnx.rice.edu/mdml">
    <md:abstract>Not part of the body</md:abstract>
  </metadata>
  <content>
    <para id="p1">Physics is the study of <emphasis>matter</emphasis> and energy.</para>
    <para id="p2">It underpins every other natural science.</para>
  </content>
</document>
"""


@pytest.fixture()
def collection_xml() -> str:
    return COLLECTION_XML


@pytest.fixture()
def module_xml() -> str:
    return MODULE_XML


@pytest.fixture()
async def cache() -> AsyncIterator[Cache]:
    """Cache backed by a fresh in-memory SQLite database."""
    async with aiosqlite.connect(":memory:") as db:
        cache = Cache(db)
        await cache.init_db()
        yield cache


@pytest.fixture()
async def vector_index() -> AsyncIterator[VectorIndex]:
    """VectorIndex backed by a fresh in-memory SQLite database."""
    async with aiosqlite.connect(":memory:") as db:
        index = VectorIndex(db)
        await index.init_db()
        yield index

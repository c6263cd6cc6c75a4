"""Tests for sample catalog resolution."""

import asyncio

import pytest

from tissue_efp.errors import TransportError
from tissue_efp.expression.catalog import SampleCatalog

from conftest import CATALOG_URL, FakeResponse, FakeSession


def resolve_all(catalog, *names):
    async def run():
        return await asyncio.gather(*(catalog.resolve(name) for name in names))

    return asyncio.run(run())


class TestSampleCatalog:
    def test_resolves_and_strips_extension(self, leaf_catalog):
        catalog = SampleCatalog(FakeSession({CATALOG_URL: leaf_catalog}), CATALOG_URL)
        (entry,) = resolve_all(catalog, "leaf_diagram.svg")

        assert entry.diagram == "leaf_diagram"
        assert entry.database_source == "abiotic"
        assert entry.region_to_sample_ids == {"Leaf": ["S1", "S2"]}
        assert entry.sample_ids == ["S1", "S2"]

    def test_document_is_fetched_once(self, leaf_catalog):
        session = FakeSession({CATALOG_URL: leaf_catalog})
        catalog = SampleCatalog(session, CATALOG_URL)
        resolve_all(catalog, "leaf_diagram", "no_db_diagram", "leaf_diagram")
        resolve_all(catalog, "leaf_diagram")

        assert catalog.fetch_count == 1
        assert session.calls == [CATALOG_URL]

    def test_unknown_diagram_is_empty(self, leaf_catalog):
        catalog = SampleCatalog(FakeSession({CATALOG_URL: leaf_catalog}), CATALOG_URL)
        (entry,) = resolve_all(catalog, "missing")
        assert not entry.is_queryable
        assert entry.region_to_sample_ids == {}
        assert entry.sample_ids == []

    def test_missing_db_has_no_sample_ids(self, leaf_catalog):
        catalog = SampleCatalog(FakeSession({CATALOG_URL: leaf_catalog}), CATALOG_URL)
        (entry,) = resolve_all(catalog, "no_db_diagram")
        assert entry.database_source is None
        assert entry.sample_ids == []

    def test_duplicate_sample_ids_are_preserved(self):
        document = {"d": {"db": "x", "sample": {"A": ["S1", "S2"], "B": ["S2"]}}}
        catalog = SampleCatalog(FakeSession({CATALOG_URL: document}), CATALOG_URL)
        (entry,) = resolve_all(catalog, "d")
        assert entry.sample_ids == ["S1", "S2", "S2"]

    def test_failed_fetch_is_not_memoized(self, leaf_catalog):
        session = FakeSession({CATALOG_URL: FakeResponse(status_code=503, text="down")})
        catalog = SampleCatalog(session, CATALOG_URL)
        with pytest.raises(TransportError):
            resolve_all(catalog, "leaf_diagram")
        assert not catalog.loaded

        session.routes[CATALOG_URL] = leaf_catalog
        (entry,) = resolve_all(catalog, "leaf_diagram")
        assert entry.is_queryable
        assert catalog.fetch_count == 2

"""Tests for candidate source backends."""

import json

import pytest
from opensearchpy import exceptions

from campaign_search.backends import opensearch as opensearch_backend
from campaign_search.backends import query_syntax
from campaign_search.backends.base import LexicalQuerySyntaxError, split_related_names
from campaign_search.backends.factory import (
    BackendType,
    create_backends,
    create_backends_from_config,
    create_controller,
)
from campaign_search.backends.memory import EntityRecord, InMemoryEntityStore
from campaign_search.backends.opensearch import OpenSearchEntityStore, to_query_string
from campaign_search.backends.postgres import PostgresEntityStore, to_tsquery
from campaign_search.common.config import SearchConfig
from campaign_search.engine.models import Scope

Term = query_syntax.Term


def test_parse_prefilter_queries():
    assert query_syntax.parse("dragon*") == Term("dragon", prefix=True)
    assert query_syntax.parse("dragon* OR cave*") == query_syntax.Or((Term("dragon", True), Term("cave", True)))
    assert query_syntax.parse("dragon cave*") == query_syntax.And((Term("dragon"), Term("cave", True)))
    assert query_syntax.parse("(sword* OR blade*) AND rune*") == query_syntax.And((
        query_syntax.Or((Term("sword", True), Term("blade", True))),
        Term("rune", True),
    ))


def test_or_binds_looser_than_and():
    node = query_syntax.parse("a AND b OR c")
    assert node == query_syntax.Or((query_syntax.And((Term("a"), Term("b"))), Term("c")))


@pytest.mark.parametrize("query", ["", "   ", "dragon OR", "OR dragon", "(a* OR b*", "a* )", "*", "dra*gon"])
def test_malformed_prefilter_queries(query):
    with pytest.raises(LexicalQuerySyntaxError):
        query_syntax.parse(query)


def test_terms_and_evaluate():
    node = query_syntax.parse("(sword* OR blade*) AND rune*")
    assert [t.text for t in query_syntax.terms(node)] == ["sword", "blade", "rune"]
    assert query_syntax.evaluate(node, lambda t: t.text in ("blade", "rune"))
    assert not query_syntax.evaluate(node, lambda t: t.text == "rune")


def test_to_tsquery():
    assert to_tsquery("dragon*") == "'dragon':*"
    assert to_tsquery("dragon* OR cave*") == "('dragon':* | 'cave':*)"
    assert to_tsquery("dragon cave*") == "('dragon' & 'cave':*)"
    assert to_tsquery("o'brien*") == "'o''brien':*"


def test_to_query_string():
    assert to_query_string("dragon* OR cave*") == "(dragon* OR cave*)"
    assert to_query_string("dragon cave*") == "(dragon AND cave*)"
    assert to_query_string("key:value*") == r"key\:value*"


def test_split_related_names():
    assert split_related_names("Gandalf, Frodo ,") == ("Gandalf", "Frodo")
    assert split_related_names(["Gandalf", None, "Frodo"]) == ("Gandalf", "Frodo")
    assert split_related_names(None) == ()


@pytest.fixture
def store():
    return InMemoryEntityStore([
        EntityRecord("loc-1", "c1", "location", "Dragon Cave"),
        EntityRecord("loc-2", "c1", "location", "Old Mill", description="A dragon once slept here"),
        EntityRecord("loc-3", "c1", "location", "Dragon Bridge", deleted=True),
        EntityRecord("itm-1", "c1", "item", "Dragon Tooth", metadata={"rarity": "legendary"},
                     related_names=("Gandalf",)),
        EntityRecord("loc-9", "c2", "location", "Dragon Peak"),
    ])


@pytest.mark.asyncio
async def test_memory_prefilter_orders_by_relevance(store):
    rows = await store.query("dragon*", Scope("c1", "location"), 100)
    assert [row.id for row in rows] == ["loc-1", "loc-2"]
    assert rows[0].relevance < rows[1].relevance


@pytest.mark.asyncio
async def test_memory_prefilter_respects_limit_and_scope(store):
    rows = await store.query("dragon*", Scope("c1"), 1)
    # Equal relevance falls back to id order.
    assert [row.id for row in rows] == ["itm-1"]
    assert await store.query("dragon*", Scope("unknown"), 100) == []


@pytest.mark.asyncio
async def test_memory_prefilter_searches_metadata_and_related_names(store):
    rows = await store.query("legend*", Scope("c1", "item"), 100)
    assert [row.id for row in rows] == ["itm-1"]
    rows = await store.query("gandalf", Scope("c1", "item"), 100)
    assert [row.id for row in rows] == ["itm-1"]
    assert rows[0].related_names == ("Gandalf",)


@pytest.mark.asyncio
async def test_memory_prefilter_boolean_queries(store):
    scope = Scope("c1", "location")
    assert [r.id for r in await store.query("dragon AND cave*", scope, 100)] == ["loc-1"]
    assert {r.id for r in await store.query("cave* OR mill*", scope, 100)} == {"loc-1", "loc-2"}
    assert await store.query("castle*", scope, 100) == []


@pytest.mark.asyncio
async def test_memory_prefilter_rejects_malformed_query(store):
    with pytest.raises(LexicalQuerySyntaxError):
        await store.query("dragon OR", Scope("c1"), 100)


@pytest.mark.asyncio
async def test_memory_list_all(store):
    rows = await store.list_all(Scope("c1", "location"))
    assert sorted(row.id for row in rows) == ["loc-1", "loc-2"]
    assert all(row.relevance is None for row in rows)

    assert store.soft_delete("loc-1")
    assert not store.soft_delete("loc-1")
    rows = await store.list_all(Scope("c1"))
    assert sorted(row.id for row in rows) == ["itm-1", "loc-2"]


class StubOpenSearch:
    """Minimal stand-in for the OpenSearch client."""

    def __init__(self, hits=None, error=None):
        self.hits = hits or []
        self.error = error
        self.requests = []

    def search(self, index, body):
        self.requests.append((index, body))
        if self.error is not None:
            raise self.error
        return {"hits": {"hits": self.hits}}

    def ping(self):
        return True

    def close(self):
        pass


@pytest.mark.asyncio
async def test_opensearch_prefilter():
    client = StubOpenSearch(hits=[
        {"_id": "c1:loc-1", "_score": 7.5, "_source": {
            "entity_id": "loc-1", "name": "Dragon Cave", "related_names": ["Gandalf"],
        }},
    ])
    store = OpenSearchEntityStore(["http://localhost:9200"], index_name="entities", client=client)

    rows = await store.query("dragon* OR cave*", Scope("c1", "location"), 25)
    assert [row.id for row in rows] == ["loc-1"]
    assert rows[0].relevance == -7.5
    assert rows[0].related_names == ("Gandalf",)

    index, body = client.requests[0]
    assert index == "entities"
    assert body["size"] == 25
    bool_query = body["query"]["bool"]
    assert bool_query["must"][0]["query_string"]["query"] == "(dragon* OR cave*)"
    assert {"term": {"campaign_id": "c1"}} in bool_query["filter"]
    assert {"term": {"entity_type": "location"}} in bool_query["filter"]
    assert await store.health_check()


@pytest.mark.asyncio
async def test_opensearch_request_error_is_syntax_error():
    client = StubOpenSearch(error=exceptions.RequestError(400, "query_shard_exception", {}))
    store = OpenSearchEntityStore(["http://localhost:9200"], client=client)
    with pytest.raises(LexicalQuerySyntaxError):
        await store.query("dragon*", Scope("c1"), 10)


@pytest.mark.asyncio
async def test_opensearch_list_all(monkeypatch):
    hits = [
        {"_id": "c1:loc-1", "_source": {"entity_id": "loc-1", "name": "Dragon Cave"}},
        {"_id": "c1:loc-2", "_source": {"entity_id": "loc-2", "name": "Old Mill", "related_names": "A, B"}},
    ]
    monkeypatch.setattr(opensearch_backend, "scan", lambda client, index, query: iter(hits))
    store = OpenSearchEntityStore(["http://localhost:9200"], client=StubOpenSearch())

    rows = await store.list_all(Scope("c1"))
    assert [row.id for row in rows] == ["loc-1", "loc-2"]
    assert rows[1].related_names == ("A", "B")
    assert all(row.relevance is None for row in rows)


def test_factory_creates_backends():
    prefilter, full_scan = create_backends_from_config(SearchConfig(cs_search_backend="memory"))
    assert isinstance(prefilter, InMemoryEntityStore)
    assert prefilter is full_scan

    prefilter, _ = create_backends(BackendType.POSTGRES, SearchConfig())
    assert isinstance(prefilter, PostgresEntityStore)

    prefilter, _ = create_backends(BackendType.OPENSEARCH, SearchConfig())
    assert isinstance(prefilter, OpenSearchEntityStore)


def test_create_controller(tmp_path):
    path = tmp_path / "aliases.json"
    path.write_text(json.dumps({"de": {"waffe": ["weapon"]}}), encoding="utf-8")
    config = SearchConfig(
        cs_search_backend="memory",
        cs_search_result_limit=20,
        cs_search_prefilter_limit=40,
        cs_term_aliases_file=str(path),
        cs_term_locale="de",
    )

    controller = create_controller(config)
    assert controller.ranking.limit == 20
    assert controller.prefilter_limit == 40
    assert controller.parser.expander is not None
    assert controller.parser.parse("waffe").prefilter_query == "weapon*"

    controller = create_controller(SearchConfig(cs_search_backend="memory"))
    assert controller.parser.expander is None


def test_create_controller_rejects_limits_above_hard_caps():
    with pytest.raises(ValueError):
        create_controller(SearchConfig.model_construct(
            cs_search_backend="memory", cs_search_result_limit=50, cs_search_prefilter_limit=500,
        ))

import sys
import threading
import time
from types import SimpleNamespace

import numpy as np
import pytest

from storyforest import ranking
from storyforest.ages import calculate_age
from storyforest.catalog import store


CANDIDATES = {
    "docs": [
        {"key": "/works/OL1W", "title": "Trucks Go", "isbn": ["9780306406157"]},
        {"key": "/works/OL2W", "title": "Moon Baby"},
        {"key": "/works/OL3W", "title": "Little Owl"},
    ]
}


class FakeEmbedder:
    """Maps each known text to a fixed vector."""

    VECTORS = {
        "Trucks Go": [0.0, 1.0],
        "Moon Baby": [1.0, 0.0],
        "Little Owl": [0.7, 0.7],
        "Goodnight Moon": [1.0, 0.1],
    }

    def encode(self, texts, convert_to_numpy=True):
        return np.array([self.VECTORS[t] for t in texts], dtype=float)


@pytest.fixture
def fake_embedder(monkeypatch, settings):
    settings.ranking_enabled = True
    monkeypatch.setattr(ranking, "get_embedder", lambda: FakeEmbedder())


def test_rank_by_similarity_orders_by_best_match(fake_embedder):
    items = ["trucks", "moon", "owl"]
    ranked = ranking.rank_by_similarity(items, ["Trucks Go", "Moon Baby", "Little Owl"], ["Goodnight Moon"])
    assert ranked == ["moon", "owl", "trucks"]


def test_rank_keeps_order_without_liked_titles(fake_embedder):
    assert ranking.rank_by_similarity([1, 2, 3], ["a", "b", "c"], []) == [1, 2, 3]


def test_rank_keeps_order_when_disabled(settings):
    settings.ranking_enabled = False
    assert ranking.rank_by_similarity([1, 2], ["a", "b"], ["x"]) == [1, 2]


def test_rank_keeps_order_when_model_fails(monkeypatch, settings):
    settings.ranking_enabled = True

    def broken():
        raise RuntimeError("model unavailable")

    monkeypatch.setattr(ranking, "get_embedder", broken)
    assert ranking.rank_by_similarity([1, 2], ["a", "b"], ["x"]) == [1, 2]


def test_cosine_similarity_zero_vector():
    assert ranking._cosine_similarity(np.zeros(2), np.array([1.0, 0.0])) == 0.0


def test_get_recommendations_query_and_exclusions(http_responses):
    http_responses.responses["openlibrary.org/search.json"] = CANDIDATES

    results = store.get_recommendations(1, exclude={"OL2W"}, limit=5)

    assert [r.olid for r in results] == ["OL1W", "OL3W"]
    assert "q=baby+books" in http_responses.calls[0]
    assert "limit=15" in http_responses.calls[0]


def test_get_recommendations_excludes_by_isbn(http_responses):
    http_responses.responses["openlibrary.org/search.json"] = CANDIDATES
    results = store.get_recommendations(6, exclude={"9780306406157"})
    assert "OL1W" not in [r.olid for r in results]
    assert "q=children+books" in http_responses.calls[0]


def test_get_recommendations_limit(http_responses):
    http_responses.responses["openlibrary.org/search.json"] = CANDIDATES
    assert len(store.get_recommendations(2, limit=2)) == 2


def test_recommendations_endpoint(parent, add_child, http_responses, fake_embedder):
    http_responses.responses["openlibrary.org/search.json"] = CANDIDATES
    child = add_child(parent, birth_month=1, birth_year=2022)
    cid = child["id"]
    parent.post(
        f"/api/children/{cid}/library",
        json={"title": "Goodnight Moon", "author": "M. W. Brown", "olid": "OL99W", "rating": "up"},
    )
    parent.post(f"/api/children/{cid}/wishlist", json={"title": "Little Owl", "author": "X", "olid": "OL3W"})

    resp = parent.get(f"/api/children/{cid}/recommendations")

    assert resp.status_code == 200
    assert [b["olid"] for b in resp.json()] == ["OL2W", "OL1W"]
    age = calculate_age(1, 2022)
    expected_query = "baby+books" if age <= 1 else "toddler+books" if age <= 3 else "children+books"
    assert f"q={expected_query}" in http_responses.calls[-1]


def test_recommendations_endpoint_visibility(parent, other_parent, add_child):
    child = add_child(other_parent)
    other_parent.patch("/api/user/privacy", json={"is_public": False})
    assert parent.get(f"/api/children/{child['id']}/recommendations").status_code == 403
    assert parent.get("/api/children/999/recommendations").status_code == 404


def test_recommendations_unreachable_source(parent, add_child):
    child = add_child(parent)
    resp = parent.get(f"/api/children/{child['id']}/recommendations")
    assert resp.status_code == 200
    assert resp.json() == []


def test_embedder_loads_once_under_concurrent_requests(monkeypatch):
    loads = []

    class SlowModel:
        def __init__(self, name):
            loads.append(name)
            time.sleep(0.05)

    monkeypatch.setitem(sys.modules, "sentence_transformers", SimpleNamespace(SentenceTransformer=SlowModel))
    monkeypatch.setattr(ranking, "_embedder", None)

    results = []
    threads = [threading.Thread(target=lambda: results.append(ranking.get_embedder())) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(loads) == 1
    assert len({id(r) for r in results}) == 1

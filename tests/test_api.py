"""Tests for the FastAPI server."""

from unittest.mock import MagicMock

import pytest

fastapi = pytest.importorskip("fastapi", reason="pip install paperscout[api]")
from fastapi.testclient import TestClient

from conftest import make_paper, make_s2_paper
from paperscout.api import create_app
from paperscout.errors import LLMError, PaperNotFoundError, StorageUnavailableError
from paperscout.models import Citation, Favorite, RecommendationResult, ResearchProposal


@pytest.fixture()
def mock_service():
    """MagicMock PaperService with plausible return values."""
    service = MagicMock()
    service.search.return_value = [make_paper("2301.01234v1"), make_s2_paper("S2_1")]
    service.get_paper.return_value = make_paper("2301.01234v1")
    service.search_citations_and_references.return_value = {
        "citations": [Citation(title="Citer", paper_id="c1")],
        "references": [],
    }
    service.recommend.return_value = RecommendationResult(
        papers=[make_s2_paper("r1")], source_ids=["a", "b"], failed_sources=["b"], status="degraded"
    )
    service.list_favorites.return_value = [Favorite("u1", "p1", tags=["nlp"])]
    service.add_favorite.return_value = True
    service.toggle_favorite.return_value = True
    service.is_favorite.return_value = True
    service.update_tags.return_value = True
    service.generate_tags.return_value = ["nlp", "attention"]
    service.list_ratings.return_value = []
    service.list_history.return_value = []
    service.generate_proposal.return_value = ResearchProposal(
        id="prop1", user_id="u1", title="T", description="D", source_paper_ids=["p1"]
    )
    service.list_proposals.return_value = []
    service.delete_proposal.return_value = True
    return service


@pytest.fixture()
def client(mock_service):
    return TestClient(create_app(service=mock_service), raise_server_exceptions=False)


class TestHealth:
    def test_ready(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ready", "ready": True}

    def test_not_ready_returns_503_for_requests(self):
        app = create_app(service=MagicMock())
        app.state.service = None
        client = TestClient(app, raise_server_exceptions=False)

        assert client.get("/health").json()["ready"] is False
        assert client.get("/papers/p1").status_code == 503


class TestSearch:
    def test_search(self, client, mock_service):
        resp = client.get("/search", params={"query": "machine learning", "limit": 5})

        assert resp.status_code == 200
        assert [p["id"] for p in resp.json()] == ["2301.01234v1", "S2_1"]
        mock_service.search.assert_called_once_with(
            "machine learning", source="both", limit=5, category=None
        )

    def test_requires_query_or_category(self, client):
        assert client.get("/search").status_code == 422

    def test_invalid_source(self, client):
        assert client.get("/search", params={"query": "x", "source": "bing"}).status_code == 422


class TestPapers:
    def test_get_paper(self, client):
        resp = client.get("/papers/2301.01234v1")
        assert resp.status_code == 200
        assert resp.json()["id"] == "2301.01234v1"

    def test_paper_not_found(self, client, mock_service):
        mock_service.get_paper.side_effect = PaperNotFoundError("Paper nope not found")
        assert client.get("/papers/nope").status_code == 404

    def test_citations(self, client):
        resp = client.get("/papers/S2_1/citations")
        assert resp.json() == {
            "citations": [{"paper_id": "c1", "title": "Citer", "authors": [], "year": None}],
            "references": [],
        }


class TestRecommendations:
    def test_recommendations(self, client, mock_service):
        resp = client.get("/users/u1/recommendations", params={"limit": 7})

        data = resp.json()
        assert data["status"] == "degraded"
        assert data["failed_sources"] == ["b"]
        assert [p["id"] for p in data["papers"]] == ["r1"]
        mock_service.recommend.assert_called_once_with("u1", 7)

    def test_storage_unavailable(self, client, mock_service):
        mock_service.recommend.side_effect = StorageUnavailableError("database is locked")
        resp = client.get("/users/u1/recommendations")
        assert resp.status_code == 503
        assert "locked" in resp.json()["detail"]


class TestFavorites:
    def test_list(self, client, mock_service):
        resp = client.get("/users/u1/favorites", params={"tag": "nlp"})
        assert resp.json()[0]["paper_id"] == "p1"
        mock_service.list_favorites.assert_called_once_with("u1", tag="nlp")

    def test_add(self, client, mock_service):
        resp = client.post("/users/u1/favorites", json={"paper_id": "p1", "tags": ["nlp"]})
        assert resp.json() == {"success": True, "action": "added"}
        mock_service.add_favorite.assert_called_once_with("u1", "p1", ["nlp"])

    def test_add_duplicate(self, client, mock_service):
        mock_service.add_favorite.return_value = False
        resp = client.post("/users/u1/favorites", json={"paper_id": "p1"})
        assert resp.json()["action"] == "duplicate"

    def test_check_and_remove(self, client, mock_service):
        assert client.get("/users/u1/favorites/p1").json() == {"is_favorite": True}
        assert client.delete("/users/u1/favorites/p1").json()["action"] == "removed"
        mock_service.remove_favorite.assert_called_once_with("u1", "p1")

    def test_toggle(self, client, mock_service):
        resp = client.post("/users/u1/favorites/p1/toggle")
        assert resp.json()["is_favorite"] is True
        mock_service.toggle_favorite.assert_called_once_with("u1", "p1", None)

    def test_update_tags_missing_favorite(self, client, mock_service):
        mock_service.update_tags.return_value = False
        resp = client.put("/users/u1/favorites/p1/tags", json={"tags": ["x"]})
        assert resp.status_code == 404

    def test_generate_tags(self, client):
        resp = client.post("/users/u1/favorites/p1/tags/generate")
        assert resp.json() == {"success": True, "tags": ["nlp", "attention"]}

    def test_generate_tags_llm_failure(self, client, mock_service):
        mock_service.generate_tags.side_effect = LLMError("No text completer configured")
        assert client.post("/users/u1/favorites/p1/tags/generate").status_code == 502


class TestRatingsAndHistory:
    def test_rate(self, client, mock_service):
        assert client.post("/users/u1/ratings", json={"paper_id": "p1", "rating": -1}).json() == {
            "success": True
        }
        mock_service.rate.assert_called_once_with("u1", "p1", -1)

    def test_invalid_rating(self, client, mock_service):
        resp = client.post("/users/u1/ratings", json={"paper_id": "p1", "rating": 3})
        assert resp.status_code == 422
        mock_service.rate.assert_not_called()

    def test_history(self, client, mock_service):
        client.post("/users/u1/history", json={"paper_id": "p1", "category": "cs.LG"})
        mock_service.record_view.assert_called_once_with("u1", "p1", "cs.LG")

        client.get("/users/u1/history", params={"category": "cs.LG", "limit": 10})
        mock_service.list_history.assert_called_once_with("u1", category="cs.LG", limit=10)


class TestProposals:
    def test_generate(self, client, mock_service):
        resp = client.post("/users/u1/proposals", json={"paper_ids": ["p1"]})
        assert resp.json()["id"] == "prop1"
        mock_service.generate_proposal.assert_called_once_with("u1", ["p1"])

    def test_generate_requires_papers(self, client):
        assert client.post("/users/u1/proposals", json={"paper_ids": []}).status_code == 422

    def test_delete_missing(self, client, mock_service):
        mock_service.delete_proposal.return_value = False
        assert client.delete("/users/u1/proposals/nope").status_code == 404

    def test_service_value_error_is_422(self, client, mock_service):
        mock_service.generate_proposal.side_effect = ValueError("bad input")
        assert client.post("/users/u1/proposals", json={"paper_ids": ["p1"]}).status_code == 422


class TestLifespan:
    def test_builds_service_from_settings(self, tmp_path):
        from paperscout.config import Settings

        app = create_app(settings=Settings(db_path=tmp_path / "api.db"))
        with TestClient(app) as client:
            assert client.get("/health").json()["ready"] is True
            assert client.get("/users/u1/favorites").json() == []
        assert (tmp_path / "api.db").exists()

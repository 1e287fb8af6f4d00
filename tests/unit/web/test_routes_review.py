"""Tests for cardiva.web.routes.review - Match review routes."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from cardiva.review.models import ActionResult, AutoAcceptResult, ReviewItem, ReviewJob, ReviewSuggestion
from cardiva.web.routes import review

JOB_ID = uuid4()
ITEM_ID = uuid4()
MATCH_ID = uuid4()


def review_job(**kwargs) -> ReviewJob:
    return ReviewJob(
        id=JOB_ID,
        user_id=uuid4(),
        file_name="concurso.pdf",
        status=kwargs.pop("status", "completed"),
        confirmed_at=kwargs.pop("confirmed_at", None),
        last_edited_by=None,
        created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )


def review_item(artigo: str, review_status: str = "pending", scores=()) -> ReviewItem:
    item_id = uuid4()
    return ReviewItem(
        id=item_id,
        job_id=JOB_ID,
        lote_pedido=1,
        posicao_pedido=1,
        artigo_pedido=artigo,
        descricao_pedido=None,
        especificacoes_tecnicas=None,
        quantidade_pedido=None,
        preco_artigo=None,
        preco_posicao=None,
        preco_lote=None,
        review_status=review_status,
        selected_match_id=None,
        suggestions=[
            ReviewSuggestion(
                id=uuid4(),
                rfp_item_id=item_id,
                codigo_spms="SPMS-1",
                artigo="Artigo",
                descricao=None,
                descricao_comercial=None,
                unidade_venda=None,
                quantidade_disponivel=None,
                preco=None,
                similarity_score=score,
                match_type="vector",
                rank=rank,
                status="pending",
            )
            for rank, score in enumerate(scores, start=1)
        ],
    )


@pytest.fixture
def client(make_client, user):
    return make_client(review.router, current_user=user)


class TestListItems:
    """Tests for GET /api/rfps/{job_id}/items."""

    @patch("cardiva.web.routes.review.fetch_job_items", new_callable=AsyncMock)
    @patch("cardiva.web.routes.review.fetch_job", new_callable=AsyncMock)
    def test_items_with_progress(self, mock_job, mock_items, client):
        mock_job.return_value = review_job()
        mock_items.return_value = [
            review_item("Seringa 5ml", scores=(0.8,)),
            review_item("Luvas", "accepted", scores=(0.9,)),
            review_item("Cateter"),
        ]

        response = client.get(f"/api/rfps/{JOB_ID}/items")

        assert response.status_code == 200
        data = response.json()
        assert data["job"]["review_status"] == "por_rever"
        assert data["job"]["can_confirm"] is False
        assert data["progress"]["total"] == 3
        assert data["progress"]["por_rever"] == 1
        assert [item["category"] for item in data["items"]] == ["por_rever", "matched", "no_match"]

    @patch("cardiva.web.routes.review.fetch_job_items", new_callable=AsyncMock)
    @patch("cardiva.web.routes.review.fetch_job", new_callable=AsyncMock)
    def test_filter_and_search(self, mock_job, mock_items, client):
        mock_job.return_value = review_job()
        mock_items.return_value = [
            review_item("Seringa 5ml", scores=(0.8,)),
            review_item("Seringa 10ml", "accepted", scores=(0.9,)),
        ]

        response = client.get(f"/api/rfps/{JOB_ID}/items?filter=matched&search=seringa")

        items = response.json()["items"]
        assert [item["artigo_pedido"] for item in items] == ["Seringa 10ml"]
        assert response.json()["progress"]["total"] == 2

    def test_invalid_filter(self, client):
        response = client.get(f"/api/rfps/{JOB_ID}/items?filter=bogus")

        assert response.status_code == 400

    @patch("cardiva.web.routes.review.fetch_job", new_callable=AsyncMock)
    def test_unknown_job(self, mock_job, client):
        mock_job.return_value = None

        assert client.get(f"/api/rfps/{JOB_ID}/items").status_code == 404

    def test_requires_authentication(self, make_client):
        client = make_client(review.router, current_user=None)

        assert client.get(f"/api/rfps/{JOB_ID}/items").status_code == 401


class TestReviewActions:
    """Tests for the review mutation routes."""

    @patch("cardiva.web.routes.review.service.accept_match", new_callable=AsyncMock)
    def test_accept(self, mock_accept, client, user):
        mock_accept.return_value = ActionResult.ok()

        response = client.post(
            f"/api/rfps/{JOB_ID}/items/{ITEM_ID}/accept", json={"match_id": str(MATCH_ID)}
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        args = mock_accept.call_args.args
        assert args[1:] == (user, JOB_ID, ITEM_ID, MATCH_ID)

    @patch("cardiva.web.routes.review.service.reject_match", new_callable=AsyncMock)
    def test_reject_not_found(self, mock_reject, client):
        mock_reject.return_value = ActionResult.fail("Match not found")

        response = client.post(
            f"/api/rfps/{JOB_ID}/items/{ITEM_ID}/reject", json={"match_id": str(MATCH_ID)}
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Match not found"

    @patch("cardiva.web.routes.review.service.unselect_match", new_callable=AsyncMock)
    def test_unauthenticated_service_result_is_401(self, mock_unselect, make_client):
        mock_unselect.return_value = ActionResult.fail("Not authenticated")
        client = make_client(review.router, current_user=None)

        response = client.post(
            f"/api/rfps/{JOB_ID}/items/{ITEM_ID}/unselect", json={"match_id": str(MATCH_ID)}
        )

        assert response.status_code == 401
        assert mock_unselect.call_args.args[1] is None

    @patch("cardiva.web.routes.review.service.set_manual_match", new_callable=AsyncMock)
    def test_manual(self, mock_manual, client):
        mock_manual.return_value = ActionResult.ok(match_id=str(MATCH_ID))

        response = client.post(
            f"/api/rfps/{JOB_ID}/items/{ITEM_ID}/manual",
            json={"article": {"codigo_spms": " SPMS-9 ", "artigo": "Compressa"}},
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"match_id": str(MATCH_ID)}
        article = mock_manual.call_args.args[4]
        assert article.codigo_spms == "SPMS-9"

    def test_malformed_match_id(self, client):
        response = client.post(
            f"/api/rfps/{JOB_ID}/items/{ITEM_ID}/accept", json={"match_id": "nope"}
        )

        assert response.status_code == 422

    @patch("cardiva.web.routes.review.service.auto_accept_exact_matches", new_callable=AsyncMock)
    def test_auto_accept(self, mock_auto, client):
        mock_auto.return_value = AutoAcceptResult(success=True, accepted_count=3)

        response = client.post(f"/api/rfps/{JOB_ID}/auto-accept")

        assert response.json() == {"success": True, "accepted_count": 3}

    @patch("cardiva.web.routes.review.service.confirm_rfp", new_callable=AsyncMock)
    def test_confirm_blocked(self, mock_confirm, client):
        mock_confirm.return_value = ActionResult.fail("Items still need review")

        response = client.post(f"/api/rfps/{JOB_ID}/confirm")

        assert response.status_code == 400

    @patch("cardiva.web.routes.review.service.revert_confirmation", new_callable=AsyncMock)
    def test_revert(self, mock_revert, client):
        mock_revert.return_value = ActionResult.ok()

        assert client.post(f"/api/rfps/{JOB_ID}/revert").status_code == 200

"""
Integration tests for API endpoints
"""
import pytest
from fastapi.testclient import TestClient

from deckforge.apis.deps import CurrentUser, current_user
from deckforge.apis.errors import status_for, to_http
from deckforge.core.errors import (
    InsufficientCredits,
    InvalidCredentials,
    NoCardsGenerated,
    PersistenceFailure,
    SlotBusy,
)
from deckforge.modules.decks.main import build_memory_service
from main import create_app
from tests.fakes import FakeExtractor, ScriptedComplete, cards_json, make_client


PDF_FILE = ("biology.pdf", b"%PDF-1.4 fake", "application/pdf")


def _client(balance=10, plan="paid", complete=None, pages=3):
    service = build_memory_service(
        balances={1: balance},
        mode="credits",
        client=make_client(complete or ScriptedComplete(default=cards_json("Cell", 5))),
        extractor=FakeExtractor(pages=pages),
    )
    app = create_app(deck_service=service)
    app.dependency_overrides[current_user] = lambda: CurrentUser(id=1, plan=plan)
    return TestClient(app), service


def _generate(client, density="low", file=PDF_FILE):
    return client.post("/v1/decks/generate", files={"file": file}, data={"density": density})


class TestHealthEndpoint:
    def test_root(self):
        client, _ = _client()
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestGenerateEndpoint:
    def test_generate_deck(self):
        client, _ = _client()
        response = _generate(client)

        assert response.status_code == 201
        data = response.json()
        assert data["deck_id"] == 1
        assert len(data["cards"]) == 5
        assert data["meta"]["final_count"] == 5
        assert data["meta"]["chunks"] == 3

    def test_balance_after_generation(self):
        client, _ = _client(balance=10)
        _generate(client)

        response = client.get("/v1/credits")
        assert response.status_code == 200
        assert response.json() == {
            "mode": "credits",
            "unit": "credits",
            "balance": 7,
            "generation_in_progress": False,
        }

    def test_insufficient_credits(self):
        client, _ = _client(balance=1)
        response = _generate(client)

        assert response.status_code == 402
        detail = response.json()["detail"]
        assert detail["error"] == "InsufficientCredits"
        assert detail["required"] == 3
        assert detail["available"] == 1

    def test_density_not_allowed(self):
        client, _ = _client(plan="free")
        response = _generate(client, density="high")
        assert response.status_code == 403

    def test_requires_pdf(self):
        client, _ = _client()
        response = _generate(client, file=("notes.txt", b"hello", "text/plain"))
        assert response.status_code == 400

    def test_rejects_non_pdf_content_type(self):
        client, _ = _client()
        response = _generate(client, file=("notes.pdf", b"%PDF-1.4 fake", "text/plain"))
        assert response.status_code == 400

    def test_rejects_oversized_upload_without_charging(self):
        client, _ = _client(balance=10)
        big = ("big.pdf", b"0" * (11 * 1024 * 1024), "application/pdf")
        response = _generate(client, file=big)

        assert response.status_code == 413
        assert client.get("/v1/credits").json()["balance"] == 10

    def test_rejects_empty_upload(self):
        client, _ = _client()
        response = _generate(client, file=("empty.pdf", b"", "application/pdf"))
        assert response.status_code == 400

    def test_no_cards_is_unprocessable(self):
        client, _ = _client(complete=ScriptedComplete(default="garbage"))
        response = _generate(client)

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "NoCardsGenerated"

    def test_too_many_pages(self):
        client, _ = _client(pages=31, balance=100)
        response = _generate(client)
        assert response.status_code == 400


class TestDeckEndpoints:
    def test_list_get_rename_delete(self):
        client, _ = _client()
        deck_id = _generate(client).json()["deck_id"]

        listing = client.get("/v1/decks").json()
        assert listing["total"] == 1
        assert listing["decks"][0]["name"] == "biology"
        assert listing["decks"][0]["card_count"] == 5

        deck = client.get(f"/v1/decks/{deck_id}").json()["deck"]
        assert deck["pdf_file_name"] == "biology.pdf"
        assert len(deck["cards"]) == 5

        renamed = client.patch(f"/v1/decks/{deck_id}", json={"name": "  Cells  "})
        assert renamed.status_code == 200
        assert renamed.json()["deck"]["name"] == "Cells"

        assert client.delete(f"/v1/decks/{deck_id}").status_code == 200
        assert client.get(f"/v1/decks/{deck_id}").status_code == 404
        assert client.delete(f"/v1/decks/{deck_id}").status_code == 404

    def test_rename_rejects_blank_name(self):
        client, _ = _client()
        deck_id = _generate(client).json()["deck_id"]
        response = client.patch(f"/v1/decks/{deck_id}", json={"name": "   "})
        assert response.status_code == 400

    def test_missing_deck(self):
        client, _ = _client()
        assert client.get("/v1/decks/99").status_code == 404

    def test_export_apkg(self):
        client, _ = _client()
        deck_id = _generate(client).json()["deck_id"]

        response = client.get(f"/v1/decks/{deck_id}/export")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/octet-stream"
        assert 'filename="biology.apkg"' in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"

    def test_list_clamps_limit(self):
        client, _ = _client()
        response = client.get("/v1/decks", params={"limit": 1000, "skip": -5})
        assert response.json()["limit"] == 100
        assert response.json()["skip"] == 0


class TestErrorMapping:
    @pytest.mark.parametrize(
        "error,code",
        [
            (SlotBusy(), 409),
            (InsufficientCredits(3, 1), 402),
            (PersistenceFailure(), 500),
            (NoCardsGenerated(), 422),
            (NoCardsGenerated([InvalidCredentials()]), 401),
        ],
    )
    def test_status_for(self, error, code):
        assert status_for(error) == code

    def test_detail_carries_user_message(self):
        exc = to_http(SlotBusy())
        assert exc.status_code == 409
        assert exc.detail["message"] == SlotBusy.default_message


class TestAuth:
    def test_missing_user_header_is_unauthorized(self):
        service = build_memory_service(balances={1: 10}, mode="credits")
        client = TestClient(create_app(deck_service=service))
        assert client.get("/v1/decks").status_code == 401

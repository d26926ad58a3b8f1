"""Tests for the FastAPI endpoints."""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from menu_lens import main
from menu_lens.config import ExtractorConfig
from menu_lens.errors import CONFIGURATION_MESSAGE, FORMAT_MESSAGE, NETWORK_MESSAGE, AnalysisNetworkError
from menu_lens.menu_vision import MenuExtractor
from tests.conftest import make_openai_client

JPEG = ("menu.jpg", b"\xff\xd8\xff\xe0fake-jpeg", "image/jpeg")


@pytest.fixture
def client(ramen_extractor, offline_resolver):
    main.app.dependency_overrides[main.get_extractor] = lambda: ramen_extractor
    main.app.dependency_overrides[main.get_resolver] = lambda: offline_resolver
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
    main._sessions.clear()
    main._last_seen.clear()


def _override_extractor(extractor):
    main.app.dependency_overrides[main.get_extractor] = lambda: extractor


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestAnalyzeEndpoint:
    def test_returns_converted_items(self, client):
        response = client.post("/analyze", files={"image": JPEG})

        assert response.status_code == 200
        data = response.json()
        assert data["items"][0]["koreanName"] == "라멘"
        assert data["items"][0]["convertedPrice"] == 8100
        assert data["items"][0]["convertedPriceText"] == "₩8,100"
        assert data["target_currency"] == "KRW"
        assert "total_ms" in data["processing_times"]

    def test_missing_image_is_rejected(self, client):
        response = client.post("/analyze")

        assert response.status_code == 422

    def test_unsupported_format_is_rejected(self, client):
        response = client.post("/analyze", files={"image": ("menu.pdf", b"%PDF", "application/pdf")})

        assert response.status_code == 422

    def test_missing_credential_is_500(self, client):
        _override_extractor(MenuExtractor(ExtractorConfig(api_key=None)))

        response = client.post("/analyze", files={"image": JPEG})

        assert response.status_code == 500
        assert response.json()["detail"] == CONFIGURATION_MESSAGE

    def test_malformed_model_output_is_422(self, client, config):
        broken = make_openai_client("Sorry, no menu here.")
        _override_extractor(MenuExtractor(config, client_factory=Mock(return_value=broken)))

        response = client.post("/analyze", files={"image": JPEG})

        assert response.status_code == 422
        assert response.json()["detail"] == FORMAT_MESSAGE


class TestSessionEndpoints:
    def _create(self, client):
        response = client.post("/sessions")
        assert response.status_code == 200
        return response.json()["session_id"]

    def test_upload_retry_reset_flow(self, client):
        session_id = self._create(client)

        uploaded = client.post(f"/sessions/{session_id}/image", files={"image": JPEG}).json()
        assert uploaded["state"] == "success"
        assert uploaded["items"][0]["convertedPrice"] == 8100
        assert uploaded["error"] is None

        retried = client.post(f"/sessions/{session_id}/retry").json()
        assert retried["state"] == "success"

        reset = client.post(f"/sessions/{session_id}/reset").json()
        assert reset["state"] == "idle"
        assert reset["items"] == []
        assert reset["uploadKey"] == uploaded["uploadKey"] + 1

        assert client.get(f"/sessions/{session_id}").json() == reset

    def test_retry_before_upload_is_noop(self, client):
        session_id = self._create(client)

        response = client.post(f"/sessions/{session_id}/retry")

        assert response.json()["state"] == "idle"
        assert response.json()["hasImage"] is False

    def test_upload_without_file_clears_session(self, client):
        session_id = self._create(client)
        client.post(f"/sessions/{session_id}/image", files={"image": JPEG})

        response = client.post(f"/sessions/{session_id}/image")

        assert response.json()["state"] == "idle"
        assert response.json()["items"] == []

    def test_network_failure_is_reported_in_session(self, client, config):
        failing = Mock()
        failing.config = config
        failing.analyze.side_effect = AnalysisNetworkError("connection reset")
        _override_extractor(failing)
        session_id = self._create(client)

        response = client.post(f"/sessions/{session_id}/image", files={"image": JPEG})

        assert response.json()["state"] == "error"
        assert response.json()["error"] == NETWORK_MESSAGE

    def test_unknown_session_is_404(self, client):
        assert client.get("/sessions/nope").status_code == 404
        assert client.post("/sessions/nope/retry").status_code == 404

    def test_delete_session(self, client):
        session_id = self._create(client)

        assert client.delete(f"/sessions/{session_id}").json() == {"status": "deleted"}
        assert client.get(f"/sessions/{session_id}").status_code == 404

    def test_oldest_session_is_evicted_beyond_limit(self, client, monkeypatch):
        monkeypatch.setattr(main, "MAX_SESSIONS", 2)
        first = self._create(client)
        second = self._create(client)
        client.get(f"/sessions/{first}")

        third = self._create(client)

        assert client.get(f"/sessions/{second}").status_code == 404
        assert client.get(f"/sessions/{first}").status_code == 200
        assert client.get(f"/sessions/{third}").status_code == 200
        assert len(main._sessions) == 2

    def test_idle_session_expires(self, client, monkeypatch):
        monkeypatch.setattr(main, "SESSION_TTL_S", 60)
        stale = self._create(client)
        main._last_seen[stale] -= 120

        fresh = self._create(client)

        assert stale not in main._sessions
        assert client.get(f"/sessions/{stale}").status_code == 404
        assert client.get(f"/sessions/{fresh}").status_code == 200

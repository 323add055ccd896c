"""
Tests for the HTTP ingestion endpoint
"""

import json
import time
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from conftest import (
    FakeNodePoolRepository,
    FakeZoneResolver,
    eventbridge_document,
    nodepool_manifest,
    sns_confirmation,
    sns_notification,
)
from api.server import APIServer
from core.dispatcher import EventDispatcher
from core.errors import ConfirmationFailed, DispatchRejected
from core.reconciler import NodePoolReconciler


@pytest.fixture
def dispatcher():
    dispatcher = MagicMock()
    dispatcher.get_status.return_value = {"in_flight": 0, "completed": 0, "rejected": 0}
    dispatcher.history.return_value = []
    return dispatcher


@pytest.fixture
def client(dispatcher):
    server = APIServer(dispatcher, {"environment": "test"})
    return TestClient(server.app)


def _post(client, doc):
    body = doc if isinstance(doc, (str, bytes)) else json.dumps(doc)
    return client.post("/sns", content=body, headers={"Content-Type": "text/plain; charset=UTF-8"})


class TestSNSEndpoint:

    def test_direct_event_is_accepted(self, client, dispatcher):
        response = _post(client, eventbridge_document())

        assert response.status_code == 200
        assert response.json() == {"status": "accepted", "event_id": "abc123"}
        event = dispatcher.submit.call_args.args[0]
        assert (event.region, event.away_from) == ("us-east-1", "us-east-1b")

    def test_notification_is_accepted(self, client, dispatcher):
        response = _post(client, sns_notification(eventbridge_document()))

        assert response.status_code == 200
        dispatcher.submit.assert_called_once()

    def test_malformed_body_is_400(self, client, dispatcher):
        response = _post(client, "{invalid-json")

        assert response.status_code == 400
        dispatcher.submit.assert_not_called()

    def test_missing_away_from_is_400(self, client, dispatcher):
        response = _post(client, eventbridge_document(away_from=None))

        assert response.status_code == 400
        assert "away_from" in response.json()["detail"]

    def test_unparseable_embedded_message_is_500(self, client, dispatcher):
        response = _post(client, sns_notification("{invalid-event}"))

        assert response.status_code == 500
        dispatcher.submit.assert_not_called()

    def test_confirmation(self, client, dispatcher):
        response = _post(client, sns_confirmation())

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        dispatcher.confirm_subscription.assert_called_once()
        dispatcher.submit.assert_not_called()

    def test_failed_confirmation_is_500(self, client, dispatcher):
        dispatcher.confirm_subscription.side_effect = ConfirmationFailed("HTTP 403")

        response = _post(client, sns_confirmation())

        assert response.status_code == 500

    def test_saturated_dispatcher_is_503(self, client, dispatcher):
        dispatcher.submit.side_effect = DispatchRejected("worker pool saturated")

        response = _post(client, eventbridge_document())

        assert response.status_code == 503


class TestStatusEndpoints:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_status_includes_config(self, client):
        assert client.get("/status").json()["config"] == {"environment": "test"}

    def test_history_passes_limit(self, client, dispatcher):
        response = client.get("/history", params={"limit": 5})

        assert response.json()["limit"] == 5
        dispatcher.history.assert_called_once_with(5)

    def test_history_rejects_negative_limit(self, client, dispatcher):
        response = client.get("/history", params={"limit": -1})

        assert response.status_code == 422
        dispatcher.history.assert_not_called()


@pytest.mark.integration
def test_notification_reconciles_node_pools_end_to_end():
    repository = FakeNodePoolRepository([
        nodepool_manifest("team-a", zones=["us-east-1a", "us-east-1b", "us-east-1c"]),
        nodepool_manifest("team-b"),
    ])
    reconciler = NodePoolReconciler(repository, FakeZoneResolver(["us-east-1a", "us-east-1c"]))
    dispatcher = EventDispatcher(reconciler, max_workers=1, queue_size=1)
    client = TestClient(APIServer(dispatcher).app)

    try:
        response = _post(client, sns_notification(eventbridge_document()))
        assert response.status_code == 200

        deadline = time.monotonic() + 5
        while not dispatcher.history() and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        dispatcher.shutdown()

    history = client.get("/history").json()["results"]
    assert history[0]["status"] == "ok"
    assert repository.zones("team-a") == ["us-east-1a", "us-east-1c"]
    assert repository.zones("team-b") is None

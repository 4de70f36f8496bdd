"""
Integration tests for POST /api/cta-event.
"""

import pytest

from listing_billing.config.rate_limits import RateLimitConfigLoader
from listing_billing.models.cta_event import CtaEvent

CTA_URL = "/api/cta-event"


@pytest.fixture
def tight_limits(make_yaml_config):
    path = make_yaml_config("rate_limits.yml", {
        "limits": {
            "cta_event_origin": {"ceiling": 1, "window_seconds": 60},
            "cta_event_subject": {"ceiling": 2, "window_seconds": 3600},
        },
    })
    return RateLimitConfigLoader(str(path))


class TestCtaEventApi:

    def test_success(self, client, db_session, make_store):
        make_store(id=5)

        response = client.post(CTA_URL, json={"subject_id": 5, "event_type": "call", "source": "/s/5"})

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert db_session.query(CtaEvent).count() == 1

    def test_invalid_json(self, client):
        response = client.post(CTA_URL, content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body"}

    def test_missing_fields(self, client):
        response = client.post(CTA_URL, json={"subject_id": 5})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}

    def test_invalid_event_type(self, client, make_store):
        make_store(id=5)

        response = client.post(CTA_URL, json={"subject_id": 5, "event_type": "fax", "source": "/s/5"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid event type"}

    @pytest.mark.parametrize("subject_id,error", [
        (True, "Invalid request body"),
        (99999999999999999999, "Invalid store id"),
    ])
    def test_subject_id_must_be_a_column_sized_integer(
        self, client, db_session, make_store, subject_id, error
    ):
        make_store(id=1)

        response = client.post(CTA_URL, json={"subject_id": subject_id, "event_type": "call", "source": "/x"})

        assert response.status_code == 400
        assert response.json() == {"error": error}
        assert db_session.query(CtaEvent).count() == 0

    def test_unknown_store(self, client):
        response = client.post(CTA_URL, json={"subject_id": 404, "event_type": "call", "source": "/x"})

        assert response.status_code == 404
        assert response.json() == {"error": "Store not found"}

    def test_rate_limited_per_origin_and_subject(self, client, make_store, tight_limits):
        make_store(id=5)
        body = {"storeId": 5, "eventType": "website", "sourcePage": "/s/5"}

        first = client.post(CTA_URL, json=body, headers={"X-Forwarded-For": "198.51.100.1"})
        same_origin = client.post(CTA_URL, json=body, headers={"X-Forwarded-For": "198.51.100.1"})
        second_origin = client.post(CTA_URL, json=body, headers={"X-Forwarded-For": "198.51.100.2"})
        third_origin = client.post(CTA_URL, json=body, headers={"X-Forwarded-For": "198.51.100.3"})

        assert first.status_code == 200
        assert same_origin.status_code == 429
        assert second_origin.status_code == 200
        assert third_origin.status_code == 429
        assert same_origin.json() == {"error": "Rate limited"}
        assert third_origin.json() == {"error": "Rate limited"}


class TestHealth:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

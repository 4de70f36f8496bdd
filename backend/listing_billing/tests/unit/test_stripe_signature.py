"""
Unit tests for Stripe webhook signature verification and event decoding.
"""

import json
import time

import pytest

from listing_billing.entitlements.errors import MalformedEventError, WebhookAuthenticationError
from listing_billing.services.stripe_webhook_verifier import (
    construct_event,
    parse_stripe_event,
    verify_stripe_signature,
)

SECRET = "whsec_unit_test_secret"


@pytest.fixture
def payload():
    return json.dumps({
        "id": "evt_123",
        "type": "invoice.payment_failed",
        "created": 1760000000,
        "data": {"object": {"id": "in_1", "subscription": "sub_1"}},
    })


@pytest.mark.security
class TestVerifyStripeSignature:

    def test_valid_signature(self, payload, sign_payload):
        body, header = sign_payload(json.loads(payload), secret=SECRET)
        assert verify_stripe_signature(body, header, SECRET) == body

    def test_bytes_payload_is_decoded(self, sign_payload):
        body, header = sign_payload({"id": "evt_1"}, secret=SECRET)
        assert verify_stripe_signature(body.encode("utf-8"), header, SECRET) == body

    def test_missing_header(self, payload):
        with pytest.raises(WebhookAuthenticationError, match="Missing stripe-signature header"):
            verify_stripe_signature(payload, None, SECRET)

    def test_missing_secret(self, payload, sign_payload):
        _, header = sign_payload({"id": "evt_1"}, secret=SECRET)
        with pytest.raises(WebhookAuthenticationError):
            verify_stripe_signature(payload, header, "")

    def test_wrong_secret(self, sign_payload):
        body, header = sign_payload({"id": "evt_1"}, secret="whsec_other")
        with pytest.raises(WebhookAuthenticationError, match="Invalid signature"):
            verify_stripe_signature(body, header, SECRET)

    def test_tampered_body(self, sign_payload):
        body, header = sign_payload({"id": "evt_1", "type": "a"}, secret=SECRET)
        with pytest.raises(WebhookAuthenticationError):
            verify_stripe_signature(body.replace('"a"', '"b"'), header, SECRET)

    def test_stale_timestamp_rejected(self, sign_payload):
        old = int(time.time()) - 3600
        body, header = sign_payload({"id": "evt_1"}, secret=SECRET, timestamp=old)
        with pytest.raises(WebhookAuthenticationError):
            verify_stripe_signature(body, header, SECRET, tolerance=300)

    def test_garbage_header(self, payload):
        with pytest.raises(WebhookAuthenticationError):
            verify_stripe_signature(payload, "not-a-signature", SECRET)

    def test_undecodable_bytes(self):
        with pytest.raises(WebhookAuthenticationError):
            verify_stripe_signature(b"\xff\xfe\xfa", "t=1,v1=00", SECRET)


class TestParseStripeEvent:

    def test_parses_envelope(self, payload):
        event = parse_stripe_event(payload)
        assert event.id == "evt_123"
        assert event.type == "invoice.payment_failed"
        assert event.object_id == "in_1"
        assert event.metadata == {}

    @pytest.mark.parametrize("body", [
        "not json",
        "[]",
        json.dumps({"type": "x", "data": {"object": {}}}),
        json.dumps({"id": "evt_1", "data": {"object": {}}}),
        json.dumps({"id": "evt_1", "type": "x"}),
        json.dumps({"id": "evt_1", "type": "x", "data": {"object": "nope"}}),
    ])
    def test_malformed_envelopes(self, body):
        with pytest.raises(MalformedEventError):
            parse_stripe_event(body)

    def test_construct_event_verifies_first(self, sign_payload):
        body, header = sign_payload({"id": "evt_9", "type": "x", "data": {"object": {}}}, secret=SECRET)
        assert construct_event(body, header, SECRET).id == "evt_9"

        with pytest.raises(WebhookAuthenticationError):
            construct_event("not json", header, SECRET)

"""
Tests for JWT handling and webhook signature verification.
"""
import time
from datetime import timedelta

from storefront.core.security import (
    create_access_token,
    decode_access_token,
    sign_stripe_payload,
    sign_svix_payload,
    verify_stripe_signature,
    verify_svix_signature,
)

PAYLOAD = b'{"id":"evt_1","type":"payment_intent.succeeded"}'
SVIX_SECRET = "whsec_dGVzdC1jbGVyay1zZWNyZXQ="
SVIX_TS = "1700000000"
SVIX_NOW = 1700000100.0


class TestAccessToken:
    def test_round_trip(self):
        token = create_access_token({"sub": "user_123"})

        payload = decode_access_token(token)

        assert payload["sub"] == "user_123"
        assert "exp" in payload

    def test_expired_token(self):
        token = create_access_token({"sub": "user_123"}, expires_delta=timedelta(seconds=-5))

        assert decode_access_token(token) is None

    def test_garbage_token(self):
        assert decode_access_token("not.a.jwt") is None


class TestStripeSignature:
    def test_valid(self):
        header = sign_stripe_payload(PAYLOAD, "whsec_abc")

        assert verify_stripe_signature(PAYLOAD, header, "whsec_abc")

    def test_wrong_secret(self):
        header = sign_stripe_payload(PAYLOAD, "whsec_abc")

        assert not verify_stripe_signature(PAYLOAD, header, "whsec_other")

    def test_tampered_body(self):
        header = sign_stripe_payload(PAYLOAD, "whsec_abc")

        assert not verify_stripe_signature(PAYLOAD + b" ", header, "whsec_abc")

    def test_old_timestamp_rejected(self):
        old = int(time.time()) - 600
        header = sign_stripe_payload(PAYLOAD, "whsec_abc", timestamp=old)

        assert not verify_stripe_signature(PAYLOAD, header, "whsec_abc", tolerance=300)
        assert verify_stripe_signature(PAYLOAD, header, "whsec_abc", tolerance=0)

    def test_any_matching_v1_is_accepted(self):
        header = sign_stripe_payload(PAYLOAD, "whsec_abc")

        assert verify_stripe_signature(PAYLOAD, f"{header},v1=deadbeef", "whsec_abc")

    def test_malformed_header(self):
        assert not verify_stripe_signature(PAYLOAD, "garbage", "whsec_abc")
        assert not verify_stripe_signature(PAYLOAD, "t=abc,v1=00", "whsec_abc")


class TestSvixSignature:
    def test_valid(self):
        signature = sign_svix_payload(PAYLOAD, "msg_1", SVIX_TS, SVIX_SECRET)

        assert verify_svix_signature(PAYLOAD, "msg_1", SVIX_TS, signature, SVIX_SECRET, now=SVIX_NOW)

    def test_multiple_signatures(self):
        signature = sign_svix_payload(PAYLOAD, "msg_1", SVIX_TS, SVIX_SECRET)

        assert verify_svix_signature(
            PAYLOAD, "msg_1", SVIX_TS, f"v1,bogus {signature}", SVIX_SECRET, now=SVIX_NOW
        )

    def test_different_message_id(self):
        signature = sign_svix_payload(PAYLOAD, "msg_1", SVIX_TS, SVIX_SECRET)

        assert not verify_svix_signature(PAYLOAD, "msg_2", SVIX_TS, signature, SVIX_SECRET, now=SVIX_NOW)

    def test_invalid_secret_format(self):
        assert not verify_svix_signature(PAYLOAD, "msg_1", SVIX_TS, "v1,abc", "whsec_%%%", now=SVIX_NOW)

    def test_stale_timestamp_rejected(self):
        signature = sign_svix_payload(PAYLOAD, "msg_1", SVIX_TS, SVIX_SECRET)

        assert not verify_svix_signature(
            PAYLOAD, "msg_1", SVIX_TS, signature, SVIX_SECRET, now=SVIX_NOW + 7 * 24 * 3600
        )

    def test_future_timestamp_rejected(self):
        signature = sign_svix_payload(PAYLOAD, "msg_1", SVIX_TS, SVIX_SECRET)

        assert not verify_svix_signature(PAYLOAD, "msg_1", SVIX_TS, signature, SVIX_SECRET, now=int(SVIX_TS) - 301)

    def test_non_numeric_timestamp(self):
        assert not verify_svix_signature(PAYLOAD, "msg_1", "soon", "v1,abc", SVIX_SECRET)

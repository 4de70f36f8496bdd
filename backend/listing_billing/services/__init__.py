"""Webhook verification and routing, durable rate limiting, CTA event intake."""

"""
Featured listing billing core.

Keeps store tiers, subscription records and feature-exposure windows in
sync with Stripe webhooks, and throttles the public CTA event endpoint.
"""

"""Data access for stores, subscriptions, tracked events and the webhook ledger."""

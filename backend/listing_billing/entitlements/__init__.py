"""
Entitlement synchronization: tier math, typed events, per-event handlers.
"""

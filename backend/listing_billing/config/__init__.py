"""Configuration loaders for billing and rate limiting."""

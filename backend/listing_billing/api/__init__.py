"""HTTP API for webhooks and public event tracking."""

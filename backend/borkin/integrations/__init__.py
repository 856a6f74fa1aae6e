"""External system clients (payment processor, identity provider)."""

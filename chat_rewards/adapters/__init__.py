"""Storage, issuer and payload adapters."""

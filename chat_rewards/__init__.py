"""Chat message scoring and at-most-once reward issuance."""

__version__ = "0.1.0"

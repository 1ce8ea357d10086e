"""Phone number identity verification and session issuance."""

__version__ = "0.1.0"

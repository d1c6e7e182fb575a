"""stackctl — deployment control for a TLS-fronted Go + MySQL stack."""

__version__ = "0.1.0"

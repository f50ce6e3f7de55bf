"""Design review service: AI feedback on uploaded designs, with per-identity throttling."""

__version__ = "0.1.0"

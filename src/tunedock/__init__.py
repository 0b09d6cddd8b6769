"""tunedock - runtime host for music data-source providers."""

__version__ = "1.0.0"

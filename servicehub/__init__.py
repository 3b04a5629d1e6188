"""ServiceHub backend: a multi-role service marketplace API."""

__version__ = "0.1.0"

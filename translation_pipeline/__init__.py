"""Translation delivery pipeline: batched, rate-limited, cached translation."""

__version__ = "0.1.0"

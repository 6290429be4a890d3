"""relaywatch — health check ranking and event replication bridge."""

__version__ = "0.1.0"

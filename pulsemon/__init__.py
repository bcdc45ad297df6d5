"""pulsemon — in-process metrics, Prometheus export, and alerting."""

__version__ = "1.0.0"

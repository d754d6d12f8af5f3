"""Device registry and data-integrity ledger for IoT sensor readings."""

__version__ = "0.1.0"

"""paydb - bucketed payment store with version-gated migrations."""

__version__ = "0.1.0"

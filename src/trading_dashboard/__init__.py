"""Trading dashboard state sync: key-value backed REST API and async client."""

__version__ = "0.1.0"

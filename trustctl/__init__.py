"""trustctl — reconcile a host's trusted CA certificates with a declared state."""

__version__ = "0.1.0"

"""kdeploy: package versioned releases and keep them in sync with GitHub."""

__version__ = "0.1.0"

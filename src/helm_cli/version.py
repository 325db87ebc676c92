"""Single source of truth for the helm-cli version string."""

__version__ = "2.1.0"

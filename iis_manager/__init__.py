"""IIS Manager API: inspect and control local IIS sites and application pools."""

__version__ = "1.0.0"

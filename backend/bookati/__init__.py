"""Multi-tenant booking core: slot capacity, package coverage and booking admission."""

__version__ = "1.0.0"

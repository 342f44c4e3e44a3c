"""goog2esm - Dependency resolution for migrating Closure namespaces to ES modules."""

__version__ = "0.1.0"

__all__ = ["__version__"]

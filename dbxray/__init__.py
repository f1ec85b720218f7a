"""dbxray - one query and introspection contract over many database engines."""

__version__ = "0.1.0"

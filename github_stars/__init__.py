"""Mirror starred GitHub repositories into a local SQLite database."""

__version__ = "0.4.0"

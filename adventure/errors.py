from __future__ import annotations


class GenerationFailure(RuntimeError):
    """Transport or parse failure while talking to the turn generator."""


class SchemaViolation(GenerationFailure):
    """A parseable reply that is missing fields we cannot coerce."""


class PersistenceCorrupt(RuntimeError):
    """A save document under the current version exists but cannot be read."""


class PersistenceUnavailable(RuntimeError):
    """The save store could not be reached (connection refused, timeout, ...)."""

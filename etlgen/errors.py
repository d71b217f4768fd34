"""Exception types raised at the engine's outer boundaries.

The parser, classifier and generators never raise on sheet content. These
errors only surface where the engine touches the outside world: schema
metadata fetches, configuration files and sheet files read by the CLI.
"""

from __future__ import annotations


class EtlGenError(Exception):
    """Base class for all etlgen errors."""


class SchemaFetchError(EtlGenError):
    """Schema metadata could not be fetched or had no recognizable table list."""

    def __init__(self, message: str, connection_id: str | None = None) -> None:
        super().__init__(message)
        self.connection_id = connection_id


class ConfigError(EtlGenError):
    """A configuration file exists but could not be understood."""


class SheetLoadError(EtlGenError):
    """A mapping sheet file could not be read into rows."""

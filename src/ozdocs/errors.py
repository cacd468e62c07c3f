"""Exception hierarchy for fatal build conditions."""

from __future__ import annotations


class OzDocsError(Exception):
    """Base class for ozdocs errors."""


class ConfigError(OzDocsError):
    """The configuration file is unreadable or has invalid values."""


class FetchError(OzDocsError):
    """A source repository could not be acquired. Fatal to the build."""


class BuildError(OzDocsError):
    """The destination store could not be created. Fatal to the build."""

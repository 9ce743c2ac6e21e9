"""Exception hierarchy for plugcraft.

All exceptions inherit from :class:`PlugcraftError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`plugcraft.exit_codes`.
Command functions catch ``PlugcraftError``, print the message and exit with
the matching code; :func:`plugcraft.app.main` does the same for anything that
escapes, while unexpected exceptions produce a crash log and exit with
:data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    PlugcraftError (exit 1)
    +-- InvalidUsageError             (exit 2)
    +-- ConfigError                   (exit 1)
    +-- ManifestError                 (exit 3)
    |   +-- MissingManifestError      (exit 3)
    +-- MissingEntryPointError        (exit 4)
    +-- PortInUseError                (exit 5)
    +-- BuildError                    (exit 1)
    +-- PathTraversalError            (exit 1, HTTP 403 per request)
    +-- PackagingError                (exit 6)
        +-- PackagingValidationError  (exit 6)
        +-- EmptyArchiveError         (exit 6)
"""

from __future__ import annotations

from plugcraft.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_MANIFEST_ERROR,
    EXIT_MISSING_ENTRY_POINT,
    EXIT_PACKAGING_FAILURE,
    EXIT_PORT_IN_USE,
)


class PlugcraftError(Exception):
    """Base exception for all plugcraft errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`plugcraft.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(PlugcraftError):
    """Raised for invalid CLI arguments or contradictory options."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(PlugcraftError):
    """Raised for configuration problems (invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE


class ManifestError(PlugcraftError):
    """Raised when ``manifest.json`` cannot be parsed or has the wrong shape."""

    exit_code = EXIT_MANIFEST_ERROR


class MissingManifestError(ManifestError):
    """Raised when no ``manifest.json`` exists in the project root."""

    def __init__(self, path: str):
        super().__init__(
            f"manifest.json not found at {path}. Are you in a plugin directory?"
        )
        self.path = path


class MissingEntryPointError(PlugcraftError):
    """Raised when the manifest's entry HTML file does not exist."""

    exit_code = EXIT_MISSING_ENTRY_POINT

    def __init__(self, entry_point: str):
        super().__init__(f"Entry file not found: {entry_point}")
        self.entry_point = entry_point


class PortInUseError(PlugcraftError):
    """Raised when the dev server port is already bound by another process."""

    exit_code = EXIT_PORT_IN_USE

    def __init__(self, host: str, port: int):
        super().__init__(
            f"Port {port} is already in use on {host}. "
            f"Try a different port: plugcraft serve --port {port + 1}"
        )
        self.host = host
        self.port = port


class BuildError(PlugcraftError):
    """Raised when a build or bundle step fails; the message names the step."""


class PathTraversalError(PlugcraftError):
    """Raised when a request path resolves outside the served project root."""

    status_code = 403


class PackagingError(PlugcraftError):
    """Base class for archive assembly failures."""

    exit_code = EXIT_PACKAGING_FAILURE


class PackagingValidationError(PackagingError):
    """Raised when required files are missing from the packaging source.

    Args:
        missing: Relative names of the files that could not be found.
    """

    def __init__(self, missing: list[str]):
        super().__init__(f"Missing required files: {', '.join(missing)}")
        self.missing = list(missing)


class EmptyArchiveError(PackagingError):
    """Raised when the written archive is absent or zero bytes."""

"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~plugcraft.exceptions.PlugcraftError` subclass.
Build scripts and CI jobs can inspect the exit code to tell a missing
manifest from a packaging failure without parsing stderr.

Example::

    $ plugcraft package
    $ echo $?
    6   # EXIT_PACKAGING_FAILURE -- required files were missing
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_MANIFEST_ERROR = 3
"""The plugin manifest is missing, unreadable, or invalid."""

EXIT_MISSING_ENTRY_POINT = 4
"""The entry HTML file declared by the manifest does not exist."""

EXIT_PORT_IN_USE = 5
"""The development server could not bind its port."""

EXIT_PACKAGING_FAILURE = 6
"""Packaging failed validation or produced an unusable archive."""

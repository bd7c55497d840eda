"""Numeric process exit codes used by the ``oauth2view`` command line.

Each constant maps to an error category and is referenced by the matching
:class:`~oauth2view.exceptions.OAuth2ViewError` subclass, so shell scripts
can tell a configuration problem from a rejected authorization without
parsing stderr.

Example::

    $ oauth2view authorize --settings github.json
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the provider denied access
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (including configuration errors)."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""Authorization failed, was cancelled, or the redirect could not be used."""

EXIT_PLATFORM_UNSUPPORTED = 4
"""Embedded presentation was requested where it is not available."""

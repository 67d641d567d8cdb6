from __future__ import annotations

"""
Domain Error Taxonomy.

Every failure the core can raise derives from TanglError so interface layers
can separate tool errors (reported to the user) from programming errors
(routed to the global supervisor). Merge conflicts are not errors and never
appear here.
"""

from typing import List, Optional, Sequence

# -----------------------------------------------------------------------------
# BASE
# -----------------------------------------------------------------------------

class TanglError(Exception):
    """Base class for all expected tangl failures."""

# -----------------------------------------------------------------------------
# BACKEND FAILURES
# -----------------------------------------------------------------------------

class GitCommandError(TanglError):
    """
    A git invocation could not be executed or exited with a failure status.

    Attributes:
        command: Argument vector passed to git (without the binary).
        returncode: Process exit status, or None if the process never ran.
        stderr: Captured error stream.
    """

    def __init__(
            self,
            message: str,
            command: Optional[Sequence[str]] = None,
            returncode: Optional[int] = None,
            stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command: List[str] = list(command or [])
        self.returncode = returncode
        self.stderr = stderr

# -----------------------------------------------------------------------------
# STATE MACHINE AND PERSISTENCE
# -----------------------------------------------------------------------------

class DerivationStateError(TanglError):
    """A derivation operation was requested in a state that does not allow it."""


class MetadataParseError(TanglError):
    """A commit carries the derivation sentinel but its payload is malformed."""


class ConflictCheckError(TanglError):
    """Conflict checks reported backend errors, so no merge order is computed."""

# -----------------------------------------------------------------------------
# NAMESPACE
# -----------------------------------------------------------------------------

class NamespaceError(TanglError):
    """A path does not resolve to a node with the expected role."""


class WrongNodeTypeError(NamespaceError):
    """A path cannot be inserted because its position violates the layout rules."""

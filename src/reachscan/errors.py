"""Exception hierarchy for the analysis."""

from __future__ import annotations


class ReachScanError(Exception):
    """Base class for errors raised by the analysis."""


class CallGraphError(ReachScanError):
    """The call graph was used out of order or reached an impossible state."""


class PatternSyntaxError(ReachScanError, ValueError):
    """A vulnerability or glob pattern could not be parsed."""


class DynamicAnalysisError(ReachScanError):
    """The external dynamic analysis timed out or could not be started."""

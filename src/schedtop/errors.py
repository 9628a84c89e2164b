"""Exceptions raised by schedtop."""


class SchedtopError(Exception):
    """Base class for failures that abort a poll."""


class StateLockError(SchedtopError):
    """The tracking state lock could not be acquired."""


class EnumeratorError(SchedtopError):
    """The process enumerator failed to produce a snapshot."""

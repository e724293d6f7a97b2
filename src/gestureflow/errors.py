"""Exception types raised by GestureFlow."""


class GestureFlowError(Exception):
    """Base class for all GestureFlow errors."""


class AcquisitionError(GestureFlowError):
    """Camera or hand-landmark model could not be opened."""


class MessageDecodeError(GestureFlowError, ValueError):
    """An inbound wire message was malformed or of an unknown type."""


class ExecutorUnavailableError(GestureFlowError):
    """An execution backend could not be started on this host."""


class NoExecutorError(GestureFlowError):
    """No execution backend is available for an action."""

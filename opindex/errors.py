"""Exception taxonomy for opindex."""


class OpIndexError(Exception):
    """Base class for all opindex errors."""


class FormatError(OpIndexError, ValueError):
    """An encoded operation is malformed or carries an unrecognized kind tag."""


class ComputationError(OpIndexError, ArithmeticError):
    """Side-data derivation hit arithmetic the ledger should never produce."""


class ModeError(OpIndexError, PermissionError):
    """The requested capability is not enabled by the operating mode."""


class TransportError(OpIndexError):
    """The search engine could not be reached or rejected the request.

    ``result`` carries the outcome of the bulk requests that completed
    before the failure, when the raiser knows it.
    """

    def __init__(self, message: str = "", result=None):
        super().__init__(message)
        self.result = result


class OperationNotFoundError(OpIndexError, LookupError):
    """No indexed document holds the requested operation."""

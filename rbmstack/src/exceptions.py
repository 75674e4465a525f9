"""Error types raised by the pretraining core."""


class RbmStackError(Exception):
    """Base class for fatal pretraining errors."""


class PreconditionViolation(RbmStackError, ValueError):
    """Input data or layer configuration the trainer cannot accept."""


class ResourceExhaustion(RbmStackError, RuntimeError):
    """Device memory could not be allocated for the pool or a matrix."""

class BlipError(Exception):
    """Base for every failure that ends a blip run."""
    prefix = "ERROR"


class PermissionDeniedError(BlipError):
    """iptables refused the probe; blip has to run as root."""
    prefix = "ABORT"


class ChainCreationError(BlipError):
    prefix = "ABORT"


class ChainNotFoundError(BlipError):
    prefix = "ABORT"


class ExecutionError(BlipError):
    """The iptables binary could not be launched or did not finish in time."""
    prefix = "ABORT"


class RuleOperationError(BlipError):
    pass


class ChainDeletionError(BlipError):
    pass


class InvalidAddressError(BlipError, ValueError):
    pass

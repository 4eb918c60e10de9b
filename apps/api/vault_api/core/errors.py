"""Domain exception hierarchy shared by services and routers."""


class VaultError(Exception):
    """Base class for emergency access errors."""


class ConfigurationError(VaultError):
    """A trigger or integration is missing required configuration."""


class DataIntegrityError(VaultError):
    """Persisted state contradicts an invariant (e.g. trigger without an owner profile)."""


class VerificationError(VaultError):
    """
    A caller-facing rejection (unknown nominee, bad code, access not granted).

    Surfaced as a 4xx response, never a 500.
    """

    def __init__(self, message: str, *, code: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class DeliveryError(VaultError):
    """An external delivery gateway failed or rejected a message."""


class EmailDeliveryError(DeliveryError):
    pass


class PushDeliveryError(DeliveryError):
    pass

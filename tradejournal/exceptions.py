class DuplicateError(Exception):
    """Raised when an insert or update hits a unique constraint."""


class CredentialError(Exception):
    """Raised when stored credentials cannot be encrypted or decrypted."""


class BrokerError(Exception):
    """Any failure talking to the broker API."""


class BrokerAuthError(BrokerError):
    pass


class BrokerNotConfiguredError(BrokerError):
    pass

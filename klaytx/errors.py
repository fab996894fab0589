class KlayTxError(Exception):
    """
    Root of every error raised by this library itself.

    Errors coming out of the RPC client, a keyring or a hashing function are
    not wrapped; they reach the caller unchanged.
    """


class ValidationError(KlayTxError, ValueError):
    """A field is malformed or missing, or a signer does not fit the transaction."""


class InvalidFieldError(ValidationError):

    def __init__(self, name: str, value, reason: str = ''):
        self.name = name
        self.value = value
        message = f'Invalid {name}: {value!r}'
        if reason:
            message += f' ({reason})'
        super().__init__(message)


class MissingFieldError(ValidationError):

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name} is undefined. Define {name} in the transaction "
                         f"or call 'transaction.fill()' to fill values.")


class AddressMismatchError(ValidationError):
    pass


class IncompatibleKeyTypeError(ValidationError):
    pass


class CannotFillError(ValidationError):
    pass


class DecodeError(KlayTxError, ValueError):
    """Raised when a raw transaction cannot be turned back into a transaction object."""


class UnknownOrMismatchedTagError(DecodeError):
    pass


class MalformedEncodingError(DecodeError):
    pass


class MergeError(KlayTxError):
    pass


class InconsistentTransactionError(MergeError):
    pass

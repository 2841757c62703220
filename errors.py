# errors.py


class MnemonicError(Exception):
    """Base class for errors raised by the mnemonic store and services."""


class StoreError(MnemonicError):
    """A read or write against the branch/vote store failed."""


class NotFoundError(MnemonicError):
    pass


class AuthorizationError(MnemonicError):
    """The caller is not signed in, or lacks the rights for the operation."""

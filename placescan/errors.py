from __future__ import annotations


class ScanError(Exception):
    """Base error for the scan store. `status` is the HTTP code the server maps it to."""

    status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ScanError):
    status = 400


class NotFoundError(ScanError):
    status = 404


class StorageError(ScanError):
    status = 500


class StorageIOError(StorageError):
    pass


class SerializationError(StorageError):
    pass


class ParseError(StorageError):
    pass

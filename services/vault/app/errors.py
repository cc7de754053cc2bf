from __future__ import annotations


class VaultError(Exception):
    pass


class ValidationError(VaultError, ValueError):
    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFoundError(VaultError, LookupError):
    def __init__(self, record_id: str):
        super().__init__(f"password not found: {record_id}")
        self.record_id = record_id


class DecryptionError(VaultError):
    pass


class RangeError(VaultError, ValueError):
    def __init__(self, field: str, value: int, minimum: int, maximum: int):
        super().__init__(f"{field} must be between {minimum} and {maximum}, got {value}")
        self.field = field
        self.value = value
        self.minimum = minimum
        self.maximum = maximum


class KeyConfigError(VaultError):
    pass


class DatabaseNotInitializedError(VaultError, RuntimeError):
    pass

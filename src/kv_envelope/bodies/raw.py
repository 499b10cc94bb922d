"""Opaque byte-string body."""

from dataclasses import dataclass

from kv_envelope.bodies.base import Body
from kv_envelope.errors import DecodeError, KeyIndexError, ValueValidationError

DATA_KEY = "data"


@dataclass
class RawBody(Body):
    """Uninterpreted payload bytes, exposed under the single key ``data``."""

    data: bytes

    def __post_init__(self):
        if not self.data:
            raise ValueValidationError("Raw body must not be empty")
        self.data = bytes(self.data)

    def to_bytes(self) -> bytes:
        return self.data

    @classmethod
    def from_bytes(cls, data: bytes) -> "RawBody":
        if not data:
            raise DecodeError("Raw body must not be empty")
        return cls(bytes(data))

    def get_key(self, key: str) -> bytes:
        if key != DATA_KEY:
            raise KeyIndexError(f"Unknown raw body field: {key!r}")
        return self.data

    def set_key(self, key: str, value: bytes) -> None:
        if key != DATA_KEY:
            raise KeyIndexError(f"Unknown raw body field: {key!r}")
        if not value:
            raise ValueValidationError("Raw body must not be empty")
        self.data = bytes(value)

    def to_dict(self) -> dict:
        return {DATA_KEY: self.data.hex().upper()}

    @classmethod
    def from_dict(cls, data: dict) -> "RawBody":
        value = data.get(DATA_KEY)
        if not isinstance(value, str):
            raise DecodeError(f"Raw body JSON needs a hex string under {DATA_KEY!r}")
        try:
            payload = bytes.fromhex(value)
        except ValueError as e:
            raise DecodeError("Invalid hex string for raw body") from e
        return cls.from_bytes(payload)

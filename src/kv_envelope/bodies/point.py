"""Point body: two signed 32-bit little-endian integers.

Layout (8 bytes):
- x (4 bytes): int32, little-endian
- y (4 bytes): int32, little-endian
"""

from dataclasses import dataclass

from kv_envelope.bodies.base import Body
from kv_envelope.errors import (
    DecodeError,
    EncodeError,
    KeyIndexError,
    ValueValidationError,
)

FIELD_LEN = 4
FIELDS = ("x", "y")
INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


@dataclass
class Point(Body):
    """A pair of int32 coordinates."""

    x: int
    y: int

    def __post_init__(self):
        for name in FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueValidationError(f"Point field {name} must be an int, got {value!r}")
            if not INT32_MIN <= value <= INT32_MAX:
                raise ValueValidationError(f"Point field {name} out of int32 range: {value}")

    def to_bytes(self) -> bytes:
        try:
            return self.x.to_bytes(FIELD_LEN, "little", signed=True) + self.y.to_bytes(
                FIELD_LEN, "little", signed=True
            )
        except OverflowError as e:
            raise EncodeError(f"Point field out of int32 range: {e}") from e

    @classmethod
    def from_bytes(cls, data: bytes) -> "Point":
        if len(data) != FIELD_LEN * len(FIELDS):
            raise DecodeError(
                f"Point body must be {FIELD_LEN * len(FIELDS)} bytes, got {len(data)}"
            )
        return cls(
            x=int.from_bytes(data[:FIELD_LEN], "little", signed=True),
            y=int.from_bytes(data[FIELD_LEN:], "little", signed=True),
        )

    def get_key(self, key: str) -> bytes:
        if key not in FIELDS:
            raise KeyIndexError(f"Unknown Point field: {key!r}")
        return getattr(self, key).to_bytes(FIELD_LEN, "little", signed=True)

    def set_key(self, key: str, value: bytes) -> None:
        if key not in FIELDS:
            raise KeyIndexError(f"Unknown Point field: {key!r}")
        if len(value) != FIELD_LEN:
            raise ValueValidationError(
                f"Point field value must be {FIELD_LEN} bytes, got {len(value)}"
            )
        setattr(self, key, int.from_bytes(value, "little", signed=True))

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict) -> "Point":
        missing = [name for name in FIELDS if name not in data]
        if missing:
            raise DecodeError(f"Point JSON missing fields: {missing}")
        try:
            return cls(x=data["x"], y=data["y"])
        except ValueValidationError as e:
            raise DecodeError(str(e)) from e

"""Base class for envelope bodies."""

import json
from abc import ABC, abstractmethod

from kv_envelope.errors import DecodeError


class Body(ABC):
    """Payload carried by an envelope.

    A body encodes itself to bytes, decodes from bytes, and exposes its
    named fields as raw byte strings through ``get_key``/``set_key``.
    """

    @abstractmethod
    def to_bytes(self) -> bytes:
        """Encode to the bytes that get signed and transmitted."""
        pass  # pragma: no cover

    @classmethod
    @abstractmethod
    def from_bytes(cls, data: bytes) -> "Body":
        """Decode from bytes.

        Raises:
            DecodeError: If the bytes are not a valid encoding
        """
        pass  # pragma: no cover

    @abstractmethod
    def get_key(self, key: str) -> bytes:
        """Read a field as raw bytes.

        Raises:
            KeyIndexError: If the key is not a field of this body
        """
        pass  # pragma: no cover

    @abstractmethod
    def set_key(self, key: str, value: bytes) -> None:
        """Overwrite a field from raw bytes.

        Raises:
            KeyIndexError: If the key is not a field of this body
            ValueValidationError: If the value has the wrong width
        """
        pass  # pragma: no cover

    @abstractmethod
    def to_dict(self) -> dict:
        """Convert to a JSON-compatible dict."""
        pass  # pragma: no cover

    @classmethod
    @abstractmethod
    def from_dict(cls, data: dict) -> "Body":
        """Build from a dict produced by ``to_dict``.

        Raises:
            DecodeError: If fields are missing or malformed
        """
        pass  # pragma: no cover

    def to_json(self) -> str:
        """Convert to compact JSON."""
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def from_json(cls, json_str: str) -> "Body":
        """Parse JSON produced by ``to_json``.

        Raises:
            DecodeError: If the text is not valid JSON for this body
        """
        try:
            data = json.loads(json_str)
        except ValueError as e:
            raise DecodeError(f"Invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise DecodeError("Body JSON must be an object")
        return cls.from_dict(data)

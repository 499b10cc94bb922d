"""MCP server for signed envelope operations.

This server exposes tools for generating signer key pairs, signing bodies
into envelopes, and decoding, verifying and patching encoded envelopes.
"""

import secrets
from typing import Optional, Type

import structlog
from mcp.server.fastmcp import FastMCP

from kv_envelope.bodies import Body, Point, RawBody
from kv_envelope.config import Config, find_config
from kv_envelope.envelope import (
    HEADER_LEN,
    Envelope,
    MsgType,
    decode_envelope,
    peek_msg_type,
)
from kv_envelope.keys import KeyPair
from kv_envelope.telemetry import setup_logging

logger = structlog.get_logger("kv_envelope.server")

BODY_TYPES: dict[str, Type[Body]] = {
    "raw": RawBody,
    "point": Point,
}


def _parse_hex(value: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError:
        raise ValueError(f"Invalid hex string: {value!r}") from None


def _body_type(body_kind: str) -> Type[Body]:
    try:
        return BODY_TYPES[body_kind.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown body kind: {body_kind!r} (expected one of {sorted(BODY_TYPES)})"
        ) from None


def _msg_type(name: str) -> MsgType:
    try:
        return MsgType[name.upper()]
    except KeyError:
        raise ValueError(f"Unknown message type: {name!r}") from None


def _describe(envelope: Envelope) -> dict:
    return {
        "type": envelope.msg_type.name,
        "type_value": envelope.msg_type.value,
        "certificate_hex": envelope.cert.to_hex() if envelope.cert else None,
        "signature_hex": envelope.signature.to_hex() if envelope.signature else None,
        "body_hex": envelope.body.to_bytes().hex(),
        "body": envelope.body.to_dict(),
    }


def create_server(config: Optional[Config] = None) -> FastMCP:
    """Create and configure the MCP server with all tools.

    Args:
        config: Optional configuration. If not provided, uses defaults.

    Returns:
        Configured FastMCP server instance.
    """
    if config is None:
        config = Config()

    mcp = FastMCP("kv-envelope")

    signer: dict[str, Optional[KeyPair]] = {"keypair": None}

    def get_signer(keypair_hex: str = "") -> KeyPair:
        """Resolve the key pair for a signing call."""
        if keypair_hex:
            return KeyPair.from_hex(keypair_hex)
        if signer["keypair"] is None:
            signer["keypair"] = config.load_keypair()
        if signer["keypair"] is None:
            raise ValueError("No signer key pair configured; pass keypair_hex")
        return signer["keypair"]

    def check_body_size(size: int) -> None:
        """Refuse bodies over the configured limit."""
        if size > config.max_body_size:
            raise ValueError(
                f"Body too large: {size} bytes (max {config.max_body_size})"
            )

    def load_envelope(data_hex: str, body_kind: str) -> Envelope:
        """Decode and verify an envelope from tool input."""
        data = _parse_hex(data_hex)
        check_body_size(len(data) - HEADER_LEN)
        return decode_envelope(data, _body_type(body_kind))

    # =========================================================================
    # Key Management
    # =========================================================================

    @mcp.tool()
    def generate_keypair() -> dict:
        """Generate a new signer key pair.

        Returns:
            Dictionary with 'keypair_hex' (keep secret) and 'certificate_hex'.
        """
        keypair = KeyPair.generate(secrets.token_bytes)
        return {
            "keypair_hex": keypair.to_hex(),
            "certificate_hex": keypair.get_certificate().to_hex(),
        }

    @mcp.tool()
    def get_certificate(keypair_hex: str = "") -> dict:
        """Get the certificate for a key pair.

        Args:
            keypair_hex: Key pair as hex. Default: the configured signer

        Returns:
            Dictionary with 'certificate_hex'.
        """
        try:
            keypair = get_signer(keypair_hex)
        except ValueError as e:
            return {"error": str(e)}
        return {"certificate_hex": keypair.get_certificate().to_hex()}

    # =========================================================================
    # Envelope Operations
    # =========================================================================

    @mcp.tool()
    def peek_envelope_type(data_hex: str) -> dict:
        """Read the message type of an encoded envelope without decoding it.

        Args:
            data_hex: Hex-encoded envelope data

        Returns:
            Dictionary with 'type' and 'type_value'.
        """
        try:
            msg_type = peek_msg_type(_parse_hex(data_hex))
        except ValueError as e:
            return {"error": str(e)}
        return {"type": msg_type.name, "type_value": msg_type.value}

    @mcp.tool()
    def sign_envelope(
        msg_type: str,
        body_hex: str,
        body_kind: str = "raw",
        keypair_hex: str = "",
    ) -> dict:
        """Wrap a body in an envelope and sign it.

        Args:
            msg_type: Message type name ('issue_request', 'quota', 'currency',
                'recycle_receipt', 'convert_request', 'transaction')
            body_hex: Encoded body as hex
            body_kind: Body decoder ('raw' or 'point'). Default: 'raw'
            keypair_hex: Signer key pair as hex. Default: the configured signer

        Returns:
            Dictionary with 'envelope_hex', 'size' and the header fields.
        """
        try:
            body_bytes = _parse_hex(body_hex)
            check_body_size(len(body_bytes))
            body = _body_type(body_kind).from_bytes(body_bytes)
            envelope = Envelope(_msg_type(msg_type), body)
            data = envelope.sign(get_signer(keypair_hex), secrets.token_bytes)
        except ValueError as e:
            return {"error": str(e)}

        result = _describe(envelope)
        result["envelope_hex"] = data.hex()
        result["size"] = len(data)
        return result

    @mcp.tool()
    def parse_envelope(data_hex: str, body_kind: str = "raw") -> dict:
        """Decode an envelope and verify its signature.

        Args:
            data_hex: Hex-encoded envelope data
            body_kind: Body decoder ('raw' or 'point'). Default: 'raw'

        Returns:
            Dictionary with type, certificate, signature and body fields.
        """
        try:
            envelope = load_envelope(data_hex, body_kind)
        except ValueError as e:
            return {"error": str(e), "verified": False}

        result = _describe(envelope)
        result["verified"] = True
        return result

    @mcp.tool()
    def get_envelope_attribute(data_hex: str, key: str, body_kind: str = "point") -> dict:
        """Read one body field of a verified envelope.

        Args:
            data_hex: Hex-encoded envelope data
            key: Body field name
            body_kind: Body decoder ('raw' or 'point'). Default: 'point'

        Returns:
            Dictionary with 'key' and 'value_hex'.
        """
        try:
            envelope = load_envelope(data_hex, body_kind)
            value = envelope.get_key(key)
        except ValueError as e:
            return {"error": str(e)}
        return {"key": key, "value_hex": value.hex()}

    @mcp.tool()
    def set_envelope_attribute(
        data_hex: str,
        key: str,
        value_hex: str,
        body_kind: str = "point",
        keypair_hex: str = "",
    ) -> dict:
        """Patch one body field of a verified envelope and re-sign it.

        Args:
            data_hex: Hex-encoded envelope data
            key: Body field name
            value_hex: New field value as hex
            body_kind: Body decoder ('raw' or 'point'). Default: 'point'
            keypair_hex: Signer key pair as hex. Default: the configured signer

        Returns:
            Dictionary with the re-signed 'envelope_hex' and header fields.
        """
        try:
            envelope = load_envelope(data_hex, body_kind)
            envelope.set_key(key, _parse_hex(value_hex))
            check_body_size(len(envelope.body.to_bytes()))
            data = envelope.sign(get_signer(keypair_hex), secrets.token_bytes)
        except ValueError as e:
            return {"error": str(e)}

        logger.info("envelope_attribute_updated", msg_type=envelope.msg_type.name, key=key)
        result = _describe(envelope)
        result["envelope_hex"] = data.hex()
        result["size"] = len(data)
        return result

    return mcp


def main():
    """Entry point for the MCP server."""
    config = find_config()
    setup_logging(config)

    server = create_server(config)
    server.run()


if __name__ == "__main__":
    main()

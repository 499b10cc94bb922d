"""Body implementations that can be carried by an envelope."""

from kv_envelope.bodies.base import Body
from kv_envelope.bodies.point import Point
from kv_envelope.bodies.raw import RawBody

__all__ = [
    "Body",
    "Point",
    "RawBody",
]

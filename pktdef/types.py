"""Field types of a packet definition.

Primitive fields are unsigned integers named ``u<bits>`` with an optional
``be``/``le`` suffix, for example ``u3``, ``u16be`` or ``u24le``.  Types
wider than a byte must state their byte order.  ``Vec<T>`` describes a
variable-length field of ``T``.  Any other name refers to a composite type,
which is built from primitives.
"""

import enum
import re
from dataclasses import dataclass

from pktdef.bitops import Endianness

__all__ = [
    "PacketDefinitionError",
    "EndiannessSpecified",
    "Primitive",
    "Vector",
    "Misc",
    "parse_ty",
    "make_type",
]

_PRIMITIVE = re.compile(r"^u([0-9]+)(be|le)?$")

_STORAGE_TYPES = ((8, "u8"), (16, "u16"), (32, "u32"), (64, "u64"))


class PacketDefinitionError(ValueError):
    """Raised when a packet definition is invalid."""


class EndiannessSpecified(enum.Enum):
    """Whether a primitive type name carried an explicit byte-order suffix."""

    NO = "no"
    YES = "yes"


@dataclass(frozen=True)
class Primitive:
    """An unsigned integer of ``size`` bits stored in ``endianness`` order."""

    name: str
    size: int
    endianness: Endianness

    def byte_width(self):
        """Number of bytes the value covers when it starts on a byte boundary."""
        return (self.size + 7) // 8

    @property
    def storage_type(self):
        """Name of the smallest of u8, u16, u32 and u64 that holds the value."""
        if self.size < 1:
            raise PacketDefinitionError(f"invalid primitive size: {self.size}")
        for bits, name in _STORAGE_TYPES:
            if self.size <= bits:
                return name
        raise PacketDefinitionError(f"primitive types may be at most 64 bits wide: {self.name}")

    @property
    def max_value(self):
        """Largest value the field can hold."""
        return (1 << self.size) - 1


@dataclass(frozen=True)
class Vector:
    """A variable-length sequence of ``inner``."""

    inner: object

    @property
    def name(self):
        return f"Vec<{self.inner.name}>"


@dataclass(frozen=True)
class Misc:
    """Any type that is neither a primitive nor a vector."""

    name: str


def parse_ty(ty):
    """Parse a name of the form ``u<bits>(be|le)?``.

    Return ``(size, endianness, specified)`` or ``None`` if ``ty`` is not of
    that form.  Without a suffix the byte order is big endian.
    """
    match = _PRIMITIVE.match(ty)
    if match is None:
        return None
    size = int(match.group(1))
    suffix = match.group(2)
    if suffix is None:
        return size, Endianness.BIG, EndiannessSpecified.NO
    endianness = Endianness.BIG if suffix == "be" else Endianness.LITTLE
    return size, endianness, EndiannessSpecified.YES


def make_type(ty_str, endianness_important):
    """Build the type described by ``ty_str``.

    With ``endianness_important`` set, primitives wider than eight bits
    must carry a ``be`` or ``le`` suffix.
    """
    ty_str = ty_str.strip()
    parsed = parse_ty(ty_str)
    if parsed is not None:
        size, endianness, specified = parsed
        if not endianness_important or size <= 8 or specified is EndiannessSpecified.YES:
            return Primitive(ty_str, size, endianness)
        raise PacketDefinitionError("endianness must be specified for types of size >= 8")
    if ty_str.startswith("Vec<") and ty_str.endswith(">"):
        return Vector(make_type(ty_str[4:-1], endianness_important))
    if ty_str.startswith("&"):
        raise PacketDefinitionError(f"invalid type: {ty_str}")
    return Misc(ty_str)
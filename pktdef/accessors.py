"""Byte layout of a packet definition, and reads and writes of its fields.

Every field starts at a fixed bit offset plus the byte lengths of the
variable-length fields that come before it.  ``layout`` works out the
fixed part and the read operations of each field; the helpers below
apply those operations to a buffer.
"""

from dataclasses import dataclass

from pktdef.bitops import Endianness, operations, read_bytes, to_little_endian
from pktdef.mutators import to_mutator
from pktdef.types import Misc, PacketDefinitionError, Primitive, Vector

__all__ = [
    "FieldLayout",
    "layout",
    "read_primitive",
    "write_primitive",
    "read_vector",
    "write_vector",
    "minimum_size",
]


@dataclass(frozen=True)
class FieldLayout:
    """Where a field lives in a packet and how its bits are read.

    ``bit_offset`` and ``end_bit`` count only fixed-size fields;
    ``preceding`` names the earlier fields whose byte lengths must be added
    to find the field at run time.  ``parts`` holds ``(bit_offset, ops)``
    for each primitive the field is made of; vectors of primitives carry
    the read operations and byte width of one element instead.
    """

    field: object
    bit_offset: int
    end_bit: int
    preceding: tuple
    parts: tuple = ()
    element_ops: tuple = ()
    element_width: int = 0

    @property
    def name(self):
        return self.field.name


def _ops_for(prim, bit):
    try:
        ops = operations(bit % 8, prim.size)
    except ValueError as exc:
        raise PacketDefinitionError(f"{prim.name}: {exc}") from None
    if prim.endianness is Endianness.LITTLE:
        ops = to_little_endian(ops)
    return tuple(ops)


def layout(spec):
    """Return a :class:`FieldLayout` for every field of ``spec``, in order."""
    entries = []
    bit = 0
    preceding = []
    for field in spec.fields:
        start = bit
        parts = ()
        element_ops = ()
        element_width = 0
        ty = field.ty
        if isinstance(ty, Primitive):
            parts = ((bit, _ops_for(ty, bit)),)
            bit += ty.size
        elif isinstance(ty, Misc):
            collected = []
            for arg in field.construct_with:
                collected.append((bit, _ops_for(arg, bit)))
                bit += arg.size
            parts = tuple(collected)
        elif isinstance(ty, Vector) and isinstance(ty.inner, Primitive):
            element_ops = _ops_for(ty.inner, 0)
            element_width = ty.inner.size // 8
        entries.append(
            FieldLayout(
                field=field,
                bit_offset=start,
                end_bit=bit,
                preceding=tuple(preceding),
                parts=parts,
                element_ops=element_ops,
                element_width=element_width,
            )
        )
        if field.has_length:
            preceding.append(field.name)
    return tuple(entries)


def minimum_size(spec):
    """Smallest number of bytes a packet of ``spec`` can occupy."""
    bits = max((entry.end_bit for entry in layout(spec)), default=0)
    return (bits + 7) // 8


def read_primitive(data, offset, ops):
    """Read the value described by ``ops`` starting at byte ``offset``."""
    if offset < 0:
        raise ValueError(f"offset must not be negative, got {offset}")
    chunk = data[offset:offset + len(ops)]
    if len(chunk) < len(ops):
        raise ValueError(
            f"field at byte {offset} needs {len(ops)} bytes, packet has {len(data)}"
        )
    return read_bytes(ops, chunk)


def write_primitive(data, offset, ops, value):
    """Write ``value`` into the writable buffer ``data`` at byte ``offset``."""
    if value < 0:
        raise ValueError(f"value must not be negative, got {value}")
    if offset < 0 or offset + len(ops) > len(data):
        raise ValueError(
            f"field at byte {offset} needs {len(ops)} bytes, packet has {len(data)}"
        )
    for idx, sop in enumerate(to_mutator(ops)):
        pos = offset + idx
        data[pos] = sop.apply(data[pos], value)


def read_vector(data, offset, length, width, ops):
    """Read elements of ``width`` bytes from at most ``length`` bytes at ``offset``.

    The range is cut short at the end of ``data``; ``length`` of ``None``
    reads to the end.
    """
    if width < 1:
        raise ValueError(f"element width must be positive, got {width}")
    end = len(data) if length is None else min(offset + length, len(data))
    if offset < 0 or offset > end:
        raise ValueError(f"field at byte {offset} lies beyond the end of the packet")
    chunk = data[offset:end]
    return [
        read_bytes(ops, chunk[start:start + width])
        for start in range(0, len(chunk) - width + 1, width)
    ]


def write_vector(data, offset, values, width, ops, limit):
    """Write ``values`` as consecutive elements of ``width`` bytes at ``offset``.

    ``limit``, unless ``None``, caps the number of values accepted.
    """
    values = list(values)
    if limit is not None and len(values) > limit:
        raise ValueError(f"{len(values)} values do not fit in a field of length {limit}")
    end = offset + len(values) * width
    if offset < 0 or end > len(data):
        raise ValueError(f"values need bytes {offset}..{end}, packet has {len(data)}")
    for index, value in enumerate(values):
        write_primitive(data, offset + index * width, ops, value)
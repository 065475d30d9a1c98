"""Operations that read a bit field out of a sequence of bytes.

A field is read one byte at a time: every byte is masked and then shifted
into position, and the partial results are OR-ed together.
"""

import enum
from dataclasses import dataclass, replace
from functools import reduce
from operator import or_

from pktdef.masks import get_mask, get_shiftl, get_shiftr

__all__ = ["Endianness", "GetOperation", "radix16", "operations", "to_little_endian"]

MAX_FIELD_BITS = 64


class Endianness(enum.Enum):
    """Byte order of a multi-byte field."""

    BIG = "big"
    LITTLE = "little"


def radix16(val):
    """Lower-case hexadecimal digits of ``val``, without prefix; zero gives ``""``."""
    if val < 0:
        raise ValueError(f"value must not be negative, got {val}")
    return format(val, "x") if val else ""


def _shift_text(text, shift):
    if shift == 0:
        return text
    if shift < 0:
        return f"{text} << {-shift}"
    return f"{text} >> {shift}"


def _shift(value, shift):
    return value << -shift if shift < 0 else value >> shift


@dataclass(frozen=True)
class GetOperation:
    """Mask a byte, then shift it left by ``shiftl`` and right by ``shiftr``."""

    mask: int
    shiftl: int
    shiftr: int

    def __post_init__(self):
        if not 0 <= self.mask <= 0xFF:
            raise ValueError(f"mask must fit in a byte, got {self.mask:#x}")

    @property
    def net_shift(self):
        """Right shift minus left shift; negative means a left shift."""
        return self.shiftr - self.shiftl

    def apply(self, byte):
        """Return this byte's contribution to the field value."""
        return _shift(byte & self.mask, self.net_shift)

    def __str__(self):
        if self.mask != 0xFF:
            mask_str = f"({{}} & 0x{radix16(self.mask)})"
        else:
            mask_str = "{}"
        return _shift_text(mask_str, self.net_shift)


def operations(offset, size):
    """Operations that read ``size`` bits starting ``offset`` bits into a byte.

    Big endian is assumed.  ``offset`` must lie in 0..7 and ``size`` in 1..64.
    """
    if not 0 <= offset <= 7:
        raise ValueError(f"bit offset must be in the range 0..7, got {offset}")
    if not 1 <= size <= MAX_FIELD_BITS:
        raise ValueError(f"field size must be in the range 1..{MAX_FIELD_BITS}, got {size}")

    num_bytes = size // 8
    if offset > 0 or size % 8:
        num_bytes += 1

    ops = []
    current = offset
    remaining = size
    for index in range(num_bytes):
        consumed, mask = get_mask(current, remaining)
        ops.append(
            GetOperation(
                mask=mask,
                shiftl=get_shiftl(offset, size, index, num_bytes),
                shiftr=get_shiftr(offset, size, index, num_bytes),
            )
        )
        current = 0
        remaining = max(remaining - consumed, 0)
    return ops


def to_little_endian(ops):
    """Turn big-endian read operations into little-endian ones."""
    ops = list(ops)
    return [replace(op, shiftl=be_op.shiftl) for op, be_op in zip(ops, reversed(ops))]


def read_bytes(ops, data):
    """Apply ``ops`` to the leading bytes of ``data`` and combine the results."""
    if len(data) < len(ops):
        raise ValueError(f"need {len(ops)} bytes, got {len(data)}")
    return reduce(or_, (op.apply(byte) for op, byte in zip(ops, data)), 0)
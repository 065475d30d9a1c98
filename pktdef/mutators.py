"""Operations that write a bit field into a sequence of bytes."""

from dataclasses import dataclass

from pktdef.bitops import radix16
from pktdef.masks import mask_high_bits

__all__ = ["SetOperation", "to_mutator"]


def _shift_text(text, shift):
    if shift == 0:
        return text
    if shift < 0:
        return f"{text} << {-shift}"
    return f"{text} >> {shift}"


@dataclass(frozen=True)
class SetOperation:
    """Write part of a value into one byte.

    ``save_mask`` holds the bits of the old byte to keep, ``value_mask`` the
    bits of the value to write; the masked value is shifted left by
    ``shiftl`` and right by ``shiftr``.
    """

    save_mask: int
    value_mask: int
    shiftl: int
    shiftr: int

    def __post_init__(self):
        if not 0 <= self.save_mask <= 0xFF:
            raise ValueError(f"save mask must fit in a byte, got {self.save_mask:#x}")
        if self.value_mask < 0:
            raise ValueError(f"value mask must not be negative, got {self.value_mask}")

    @property
    def net_shift(self):
        """Right shift minus left shift; negative means a left shift."""
        return self.shiftr - self.shiftl

    def apply(self, byte, value):
        """Return ``byte`` with this operation's share of ``value`` written in."""
        shift = self.net_shift
        masked = value & self.value_mask
        part = masked << -shift if shift < 0 else masked >> shift
        return ((byte & self.save_mask) | (part & 0xFF)) & 0xFF

    def __str__(self):
        if self.value_mask != 0xFF:
            mask_str = f"({{val}} & 0x{radix16(self.value_mask)})"
        else:
            mask_str = "{val}"
        shift_str = _shift_text(mask_str, self.net_shift)
        if self.save_mask:
            save_str = f"({{packet}} & 0x{radix16(self.save_mask)})"
            return f"{{packet}} = ({save_str} | ({shift_str}) as u8) as u8"
        return f"{{packet}} = ({shift_str}) as u8"


def to_mutator(ops):
    """Turn read operations for a field into write operations for it."""
    return [
        SetOperation(
            save_mask=~op.mask & 0xFF,
            value_mask=mask_high_bits(bin(op.mask).count("1")) << op.shiftl,
            shiftl=op.shiftr,
            shiftr=op.shiftl,
        )
        for op in ops
    ]
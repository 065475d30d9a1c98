"""Bit masks and shift amounts for fields that straddle byte boundaries.

A field of ``size`` bits starting ``offset`` bits into a byte is read
byte by byte: each byte is masked, then shifted into place.  The helpers
here compute those masks and shifts, assuming big-endian bit order.
"""

__all__ = ["get_mask", "get_shiftl", "get_shiftr", "mask_high_bits"]


def get_mask(offset, bits_remaining):
    """Return ``(bits_consumed, mask)`` for reading from ``offset`` in a byte.

    At most the bits left in the byte from ``offset`` are taken; if
    ``bits_remaining`` is larger it is truncated.
    """
    if not 0 <= offset <= 7:
        raise ValueError(f"bit offset must be in the range 0..7, got {offset}")
    if bits_remaining < 0:
        raise ValueError(f"bits_remaining must not be negative, got {bits_remaining}")
    available = 8 - offset
    consumed = available if bits_remaining >= 8 else min(available, bits_remaining)
    mask = ((0xFF << (8 - consumed)) & 0xFF) >> offset
    return consumed, mask


def get_shiftl(offset, size, byte_number, num_bytes):
    """Left shift applied to byte ``byte_number`` of a ``num_bytes`` read."""
    if num_bytes == 1 or byte_number + 1 == num_bytes:
        return 0
    base_shift = 8 - (num_bytes * 8 - offset - size)
    bytes_to_shift = num_bytes - byte_number - 2
    return (base_shift + 8 * bytes_to_shift) & 0xFF


def get_shiftr(offset, size, byte_number, num_bytes):
    """Right shift applied to byte ``byte_number`` of a ``num_bytes`` read."""
    if byte_number + 1 == num_bytes:
        return (num_bytes * 8 - offset - size) & 0xFF
    return 0


def mask_high_bits(bits):
    """Return a mask of the lowest ``bits`` bits, e.g. ``mask_high_bits(2) == 0b11``."""
    if bits < 0:
        raise ValueError(f"bit count must not be negative, got {bits}")
    return (1 << bits) - 1
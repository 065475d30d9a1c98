import pytest

from pktdef.accessors import (
    layout,
    minimum_size,
    read_primitive,
    read_vector,
    write_primitive,
    write_vector,
)
from pktdef.bitops import operations, to_little_endian
from pktdef.spec import define_packet
from pktdef.types import PacketDefinitionError

PAYLOAD = ("payload", "Vec<u8>", {"payload": True})
WIRE = bytes([0x06, 0x00, 0x01, 0x12, 0x23, 0x3F, 0xF4])


def test_read_big_endian_u16():
    assert read_primitive(bytes([0x12, 0x23]), 0, operations(0, 16)) == 0x1223


def test_write_vector_u16be_matches_wire_bytes():
    data = bytearray(7)
    data[0] = 6
    write_vector(data, 1, [0x0001, 0x1223, 0x3FF4], 2, operations(0, 16), 6)
    assert bytes(data) == WIRE


def test_read_vector_u16be():
    assert read_vector(WIRE, 1, 6, 2, operations(0, 16)) == [0x0001, 0x1223, 0x3FF4]


@pytest.mark.parametrize(
    "offset,size,value",
    [(0, 1, 1), (3, 5, 17), (1, 7, 100), (0, 16, 40000), (5, 11, 2047), (3, 33, 2**33 - 5), (0, 64, 2**64 - 1)],
)
def test_write_then_read_round_trip(offset, size, value):
    ops = operations(offset, size)
    data = bytearray(b"\xff" * 12)
    write_primitive(data, 2, ops, value)
    assert read_primitive(data, 2, ops) == value
    assert data[:2] == b"\xff\xff"
    assert data[2 + len(ops):] == b"\xff" * (10 - len(ops))


@pytest.mark.parametrize("size,value", [(16, 0x1223), (32, 0x01020304)])
def test_little_endian_is_byte_reversed(size, value):
    big = bytearray(size // 8)
    little = bytearray(size // 8)
    write_primitive(big, 0, operations(0, size), value)
    le_ops = to_little_endian(operations(0, size))
    write_primitive(little, 0, le_ops, value)
    assert bytes(little) == bytes(reversed(big))
    assert read_primitive(little, 0, le_ops) == value


def test_read_primitive_too_short():
    with pytest.raises(ValueError):
        read_primitive(b"\x01", 0, operations(0, 16))


def test_write_primitive_past_end():
    with pytest.raises(ValueError):
        write_primitive(bytearray(2), 1, operations(0, 16), 1)


def test_write_primitive_negative():
    with pytest.raises(ValueError):
        write_primitive(bytearray(2), 0, operations(0, 8), -1)


def test_write_vector_over_limit():
    with pytest.raises(ValueError):
        write_vector(bytearray(10), 0, [1, 2, 3], 1, operations(0, 8), 2)


def test_write_vector_past_end():
    with pytest.raises(ValueError):
        write_vector(bytearray(3), 1, [1, 2, 3], 1, operations(0, 8), None)


def test_read_vector_clamps_to_data():
    assert read_vector(b"\x01\x02\x03", 1, 10, 1, operations(0, 8)) == [2, 3]


def test_read_vector_offset_beyond_end():
    with pytest.raises(ValueError):
        read_vector(b"\x01", 3, 2, 1, operations(0, 8))


@pytest.mark.parametrize(
    "fields,expected",
    [
        ([("banana", "u8"), PAYLOAD], 1),
        ([("banana", "u16be"), ("payload", "Vec<u8>", {"payload": True, "length_fn": "f"})], 2),
        ([("banana", "u32be"), ("var_length", "Vec<u8>", {"length_fn": "f"}), PAYLOAD], 4),
        ([("banana", "u3"), ("tomato", "u5"), PAYLOAD], 1),
        (
            [
                ("banana", "u11be"),
                ("tomato", "u21be"),
                ("payload", "Vec<u8>", {"payload": True, "length_fn": "f"}),
            ],
            4,
        ),
        ([("banana", "u7"), ("tomato", "u9be"), ("var_length", "Vec<u8>", {"length_fn": "f"}), PAYLOAD], 2),
    ],
)
def test_minimum_size(fields, expected):
    assert minimum_size(define_packet("Sized", fields)) == expected


def test_layout_non_byte_aligned_offsets():
    entries = layout(define_packet("NonByteAligned", [("banana", "u3"), ("tomato", "u5"), PAYLOAD]))
    assert [entry.name for entry in entries] == ["banana", "tomato", "payload"]
    assert entries[1].bit_offset == 3
    assert entries[1].parts[0][0] == 3
    assert entries[1].end_bit == entries[2].bit_offset


def test_layout_preceding_lengths():
    spec = define_packet(
        "Mqtt",
        [
            ("source", "u16be"),
            ("destination", "u16be"),
            ("options", "Vec<u8>", {"length_fn": "mqtt_options_length"}),
            ("t", "u8"),
            PAYLOAD,
        ],
    )
    entries = layout(spec)
    assert entries[2].preceding == ()
    assert entries[3].preceding == ("options",)
    assert entries[4].preceding == ("options",)


def test_layout_composite_parts():
    spec = define_packet("Tagged", [("tag", "Tag", {"construct_with": ("u4", "u12be")}), PAYLOAD])
    entry = layout(spec)[0]
    assert len(entry.parts) == 2
    assert entry.parts[1][0] == entry.parts[0][0] + 4
    assert entry.end_bit == entry.bit_offset + 16


def test_layout_rejects_oversized_primitive():
    with pytest.raises(PacketDefinitionError):
        layout(define_packet("Huge", [("big", "u65be"), PAYLOAD]))
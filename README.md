# pktdef

`pktdef` lets you describe a packet layout once, as a list of named fields
with bit-exact widths, and then read, modify, size and build raw packets from
that description. Fields do not have to line up on byte boundaries: a 3-bit
field followed by a 5-bit field, or an 11-bit field followed by a 21-bit one,
are read and written exactly as they lie in the bytes.

It is a plain library with no dependencies outside the standard library and
no command-line tools.

## Installing

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Field types

Field types are written as short strings:

* `u1` … `u8`: unsigned integers of up to eight bits.
* `u9be` … `u64be` and `u9le` … `u64le`: wider unsigned integers, big or
  little endian. In a packet definition a field wider than eight bits must
  carry the suffix; `u16` on its own is rejected with `PacketDefinitionError`.
* `Vec<T>`: a variable-length run of `T`, for example `Vec<u8>`,
  `Vec<u16be>`, or a vector of another packet type. Vectors of primitives
  must have elements that are whole bytes wide (or be `Vec<u8>`); vectors of
  vectors are rejected.
* Any other name is a composite type and must list the primitives it is
  built from with `construct_with`.

`parse_ty` and `make_type` in `pktdef.types` turn these strings into
`Primitive`, `Vector` and `Misc` values.

## Describing a packet

`pktdef.spec.define_packet(name, fields)` checks a definition and returns a
`PacketSpec` of `Field`s. Each field is given as `(name, type)` or
`(name, type, attributes)`, where the attributes are a mapping, or a list of
`(key, value)` pairs and bare keys:

* `payload`: marks the payload field;
* `length`: a length expression, in bytes, for a variable-length field;
* `length_fn`: the name of a function (or a callable) that computes that
  length from the packet;
* `construct_with`: the primitive types a composite field is built from.

Any violation raises `PacketDefinitionError`, for example:

* no payload field, or more than one;
* a variable-length field that is not the payload and has no `length` or
  `length_fn`;
* a payload that is not the last field and has no length;
* a composite type without `construct_with`, or with non-primitive arguments;
* an unknown attribute, or the same attribute twice.

`PacketSpec.packet_name()` and `packet_name_mut()` give the names of the
read-only and writable views; `field(name)` and `payload_field()` look up
fields.

### Length expressions

A `length` is a small arithmetic expression over integers, the names of
*other* fields in the same packet, constants (all-uppercase names or paths
such as `std::u32::MIN`) and the operators `+ - * / %` with parentheses, for
example `"banana + 7"` or `"key * (4 + HEADER_WORDS)"`.
`pktdef.lengthexpr.parse_length_expr(expr, field_names)` parses it into a
`LengthExpr`, which can list the fields it refers to (`field_names()`),
render itself back to text (`render()`) and `evaluate(get_field, constants)`.
A float, an unknown field, the field itself or an unclosed parenthesis raises
`LengthExprError`, as does evaluating an unknown constant.

## Working with packets

`pktdef.packet.packet_class(spec, registry=None, length_fns=None, constants=None)`
(or `PacketRegistry.register(spec, length_fns, constants)`) turns a spec into
a `Packet` subclass. `length_fns` maps the names used in `length_fn`
attributes to callables taking the packet; `constants` supplies values for
constants in length expressions. Packets that hold vectors of other packets
look their element type up in the `PacketRegistry` they were registered with.

A packet wraps a buffer without copying it. A `bytes` buffer gives a
read-only view; a `bytearray` gives a writable one whose changes show in the
buffer itself.

```python
from pktdef.spec import define_packet
from pktdef.packet import packet_class

spec = define_packet("WithU16", [
    ("length", "u8"),
    ("data", "Vec<u16be>", {"length": "length"}),
    ("payload", "Vec<u8>", ["payload"]),
])
WithU16Packet = packet_class(spec)

buf = bytearray(7)
packet = WithU16Packet.new(buf)
packet.set("length", 6)
packet.set("data", [0x0001, 0x1223, 0x3FF4])
assert bytes(buf) == bytes([0x06, 0x00, 0x01, 0x12, 0x23, 0x3F, 0xF4])
```

The rest of the interface:

```python
SomePacket.new(data)                   # ValueError if data is shorter than the minimum
SomePacket.minimum_packet_size()       # bytes taken by the fixed-size fields

packet.get("banana")                   # int, tuple of ints, list, or payload bytes
packet.set("banana", 6)                # write in place; TypeError if read-only
packet.raw("options")                  # the raw bytes behind a vector field
packet.payload()                       # the payload bytes
packet.packet_size()                   # fixed part plus variable-length fields

record = packet.from_packet()          # a dict of every field
packet.populate(record)                # write a record back into the buffer
packet.to_bytes()                      # a copy of the whole buffer

SomePacket.struct_size(record)         # bytes a record occupies once encoded
list(SomePacket.iter_packets(data))    # consecutive packets packed in a buffer
```

Nested packets:

```python
from pktdef.packet import PacketRegistry

registry = PacketRegistry()
registry.register(
    define_packet("PacketOption", [
        ("pineapple", "u8"),
        ("length", "u8"),
        ("payload", "Vec<u8>", {"payload": True, "length_fn": "option_length"}),
    ]),
    length_fns={"option_length": lambda p: p.get("length") - 2},
)
Outer = registry.register(
    define_packet("PacketWithPayload", [
        ("banana", "u8"),
        ("length", "u8"),
        ("header_length", "u8"),
        ("packet_option", "Vec<PacketOption>", {"length_fn": "options_length"}),
        ("payload", "Vec<u8>", ["payload"]),
    ]),
    length_fns={"options_length": lambda p: p.get("header_length") - 2},
)

options = Outer.new(bytes([1, 8, 5, 6, 3, 1, 9, 10])).get("packet_option")
assert options[0]["pineapple"] == 6 and options[0]["length"] == 3
```

Values are given and returned in host order; the layout takes care of
masking, shifting and byte order. Writing a value too large for its storage
type, or a vector longer than its declared length, raises `ValueError`.

## Lower-level pieces

The bit arithmetic is available on its own:

* `pktdef.masks`: `get_mask`, `get_shiftl`, `get_shiftr` and
  `mask_high_bits`, the per-byte masks and shifts.
* `pktdef.bitops.operations(offset, size)` lists, byte by byte, the
  `GetOperation`s (mask and shifts) that extract a `size`-bit value starting
  `offset` bits into a byte; `to_little_endian` adapts the list for
  little-endian fields.
* `pktdef.mutators.to_mutator(ops)` derives the matching `SetOperation`s.
* `pktdef.accessors` reads and writes primitives and vectors in a buffer
  (`read_primitive`, `write_primitive`, `read_vector`, `write_vector`) and
  computes a spec's `layout` and `minimum_size`.
* `pktdef.codegen` renders the same operations as source-like text
  (`generate_accessor_op_str`, `generate_sop_strings`, `current_offset`),
  which helps when inspecting or documenting a layout.

## What it does not do

`pktdef` only works on bytes you hand it. It does not open network
interfaces, capture or send packets, or list interfaces, and it ships no
ready-made definitions of real protocols such as Ethernet, IPv4 or UDP;
those layouts have to be written with `define_packet`.
import re

import pytest

from pktdef.lengthexpr import LengthExprError
from pktdef.spec import PacketSpec, define_packet
from pktdef.types import Misc, PacketDefinitionError, Primitive, Vector


def test_invalid_type_needs_construct_with():
    with pytest.raises(
        PacketDefinitionError,
        match=re.escape("non-primitive field types must specify #[construct_with]"),
    ):
        define_packet(
            "InvalidType",
            [("field", "String"), ("payload", "Vec<u8>", {"payload": True})],
        )


def test_multiple_payloads():
    with pytest.raises(
        PacketDefinitionError, match=re.escape("packet may not have multiple payloads")
    ):
        define_packet(
            "PacketWithPayload",
            [
                ("payload1", "Vec<u8>", [("length_fn", ""), "payload"]),
                ("payload2", "Vec<u8>", ["payload"]),
            ],
        )


def test_multiple_payloads_names_first():
    with pytest.raises(
        PacketDefinitionError, match=re.escape("first payload defined here: payload1")
    ):
        define_packet(
            "P",
            [
                ("payload1", "Vec<u8>", {"length_fn": "f", "payload": True}),
                ("payload2", "Vec<u8>", {"payload": True}),
            ],
        )


def test_no_payload():
    with pytest.raises(
        PacketDefinitionError, match=re.escape("#[packet]'s must contain a payload")
    ):
        define_packet("Test", [("banana", "u8")])


def test_payload_with_arguments_is_unknown():
    with pytest.raises(PacketDefinitionError, match=re.escape("unknown attribute: payload")):
        define_packet(
            "PacketWithPayload2",
            [
                ("banana", "u8"),
                ("payload", "Vec<u8>", {"payload": {"length_fn": "length_of_payload"}}),
            ],
        )


def test_variable_length_field_needs_length():
    with pytest.raises(
        PacketDefinitionError,
        match=re.escape(
            'variable length field must have #[length = ""] or #[length_fn = ""] attribute'
        ),
    ):
        define_packet(
            "PacketWithPayload",
            [
                ("banana", "u8"),
                ("var_length", "Vec<u8>"),
                ("payload", "Vec<u8>", {"payload": True}),
            ],
        )


def test_endianness_not_specified():
    with pytest.raises(
        PacketDefinitionError,
        match=re.escape("endianness must be specified for types of size >= 8"),
    ):
        define_packet(
            "PacketU16",
            [("banana", "u16"), ("payload", "Vec<u8>", {"payload": True})],
        )


def test_unnamed_field():
    with pytest.raises(
        PacketDefinitionError, match=re.escape("all fields in a packet must be named")
    ):
        define_packet("Foo", [("", "u8", {"payload": True})])


def test_unknown_attribute():
    with pytest.raises(PacketDefinitionError, match=re.escape("unknown attribute: colour")):
        define_packet("P", [("a", "u8", {"colour": "red"}), ("p", "Vec<u8>", ["payload"])])


def test_duplicate_attribute():
    with pytest.raises(
        PacketDefinitionError,
        match=re.escape("cannot have two attributes with the same name"),
    ):
        define_packet(
            "P",
            [
                ("a", "u8"),
                ("v", "Vec<u8>", [("length", "a"), ("length", "a")]),
                ("p", "Vec<u8>", ["payload"]),
            ],
        )


def test_length_must_be_string():
    with pytest.raises(PacketDefinitionError, match=re.escape("#[length] should be used as")):
        define_packet("P", [("v", "Vec<u8>", {"length": 3}), ("p", "Vec<u8>", ["payload"])])


def test_length_fn_must_be_string():
    with pytest.raises(
        PacketDefinitionError, match=re.escape("#[length_fn] should be used as")
    ):
        define_packet("P", [("v", "Vec<u8>", {"length_fn": 3}), ("p", "Vec<u8>", ["payload"])])


def test_length_referencing_itself():
    with pytest.raises(LengthExprError, match="Field name must be a member"):
        define_packet(
            "P",
            [
                ("banana", "u8"),
                ("var_length", "Vec<u8>", {"length": "var_length"}),
                ("payload", "Vec<u8>", ["payload"]),
            ],
        )


def test_length_referencing_unknown_field():
    with pytest.raises(LengthExprError):
        define_packet(
            "P",
            [
                ("banana", "u8"),
                ("var_length", "Vec<u8>", {"length": "tomato"}),
                ("payload", "Vec<u8>", ["payload"]),
            ],
        )


def test_construct_with_empty():
    with pytest.raises(
        PacketDefinitionError,
        match=re.escape("#[construct_with] must have at least one argument"),
    ):
        define_packet("P", [("a", "Addr", {"construct_with": []}), ("p", "Vec<u8>", ["payload"])])


def test_construct_with_requires_primitives():
    with pytest.raises(
        PacketDefinitionError,
        match=re.escape("arguments to #[construct_with] must be primitives"),
    ):
        define_packet(
            "P", [("a", "Addr", {"construct_with": ["Other"]}), ("p", "Vec<u8>", ["payload"])]
        )


def test_payload_not_last_needs_length():
    with pytest.raises(
        PacketDefinitionError,
        match=re.escape("#[payload] must specify a #[length_fn], unless it is the last field"),
    ):
        define_packet("P", [("p", "Vec<u8>", ["payload"]), ("t", "u8")])


def test_vector_of_vectors():
    with pytest.raises(
        PacketDefinitionError,
        match=re.escape("variable length fields may not contain vectors"),
    ):
        define_packet(
            "P", [("v", "Vec<Vec<u8>>", {"length": "3"}), ("p", "Vec<u8>", ["payload"])]
        )


def test_vector_of_unaligned_primitive():
    with pytest.raises(
        PacketDefinitionError, match=re.escape("unimplemented variable length field")
    ):
        define_packet("P", [("v", "Vec<u9be>", {"length": "3"}), ("p", "Vec<u8>", ["payload"])])


def test_duplicate_field_names():
    with pytest.raises(PacketDefinitionError, match=re.escape("duplicate field name: a")):
        define_packet("P", [("a", "u8"), ("a", "u8"), ("p", "Vec<u8>", ["payload"])])


def test_invalid_packet_name():
    with pytest.raises(PacketDefinitionError):
        define_packet("not a name", [("p", "Vec<u8>", ["payload"])])


def test_malformed_entry():
    with pytest.raises(PacketDefinitionError, match=re.escape("field definitions must be")):
        define_packet("P", [("p",)])


@pytest.fixture
def mqtt():
    return define_packet(
        "Mqtt",
        [
            ("source", "u16be"),
            ("destination", "u16be"),
            ("options", "Vec<u8>", {"length_fn": "mqtt_options_length"}),
            ("t", "u8"),
            ("payload", "Vec<u8>", {"payload": True}),
        ],
    )


def test_names(mqtt):
    assert mqtt.packet_name() == "MqttPacket"
    assert mqtt.packet_name_mut() == "MutableMqttPacket"


def test_payload_field(mqtt):
    payload = mqtt.payload_field()
    assert payload.name == "payload"
    assert payload.is_payload
    assert payload.ty == Vector(Primitive("u8", 8, payload.ty.inner.endianness))


def test_field_lookup(mqtt):
    options = mqtt.field("options")
    assert options.length_fn == "mqtt_options_length"
    assert options.has_length
    assert options.is_variable_length
    assert mqtt.field("source").ty.size == 16
    with pytest.raises(KeyError):
        mqtt.field("missing")


def test_field_order(mqtt):
    assert [f.name for f in mqtt.fields] == ["source", "destination", "options", "t", "payload"]


def test_length_expression_is_parsed():
    spec = define_packet(
        "AnotherKey",
        [("banana", "u8"), ("payload", "Vec<u8>", {"length": "banana + 7", "payload": True})],
    )
    payload = spec.payload_field()
    assert payload.length.render() == "_self.get_banana() + 7"
    assert payload.length.field_names() == ("banana",)
    assert payload.length_fn is None


def test_construct_with_is_recorded():
    spec = define_packet(
        "P",
        [("addr", "Addr", {"construct_with": ["u8", "u16be"]}), ("p", "Vec<u8>", ["payload"])],
    )
    addr = spec.field("addr")
    assert addr.ty == Misc("Addr")
    assert [t.size for t in addr.construct_with] == [8, 16]


def test_vector_of_packets_allowed():
    spec = define_packet(
        "PacketWithPayload",
        [
            ("banana", "u8"),
            ("length", "u8"),
            ("header_length", "u8"),
            ("packet_option", "Vec<PacketOption>", {"length_fn": "length_fn"}),
            ("payload", "Vec<u8>", {"payload": True}),
        ],
    )
    assert spec.field("packet_option").ty == Vector(Misc("PacketOption"))


def test_spec_equality():
    fields = [("banana", "u8"), ("payload", "Vec<u8>", {"payload": True})]
    assert define_packet("A", fields) == define_packet("A", fields)
    assert isinstance(define_packet("A", fields), PacketSpec)
    assert define_packet("A", fields) != define_packet("B", fields)
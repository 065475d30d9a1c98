"""Packet definitions: named fields with types and attributes.

A packet is defined by a name and a sequence of fields.  Each field is
given as ``(name, type)`` or ``(name, type, attributes)``.  The
attributes are a mapping, or an iterable of ``(key, value)`` pairs and
bare keys, with these keys:

``payload``
    ``True`` marks the payload field; a packet has exactly one.
``length``
    An expression over other fields, constants and integers that gives
    the length in bytes of a variable-length field.
``length_fn``
    The name of a function (or a callable) that computes that length
    from the packet.
``construct_with``
    The primitive types a composite field is built from.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field as dataclass_field

from pktdef.lengthexpr import parse_length_expr
from pktdef.types import Misc, PacketDefinitionError, Primitive, Vector, make_type

__all__ = ["Field", "PacketSpec", "define_packet"]

_KNOWN_ATTRIBUTES = ("payload", "length", "length_fn", "construct_with")


@dataclass(frozen=True)
class Field:
    """One field of a packet definition."""

    name: str
    ty: object
    is_payload: bool = False
    length: object = None
    length_fn: object = None
    construct_with: tuple = dataclass_field(default_factory=tuple)

    @property
    def has_length(self):
        """Whether a length expression or length function is given."""
        return self.length is not None or self.length_fn is not None

    @property
    def is_variable_length(self):
        """Whether the field holds a variable-length sequence."""
        return isinstance(self.ty, Vector)


@dataclass(frozen=True)
class PacketSpec:
    """A validated packet definition."""

    base_name: str
    fields: tuple

    def packet_name(self):
        """Name of the read-only view of this packet."""
        return f"{self.base_name}Packet"

    def packet_name_mut(self):
        """Name of the writable view of this packet."""
        return f"Mutable{self.base_name}Packet"

    def payload_field(self):
        """The field marked as payload."""
        for item in self.fields:
            if item.is_payload:
                return item
        raise PacketDefinitionError("#[packet]'s must contain a payload")

    def field(self, name):
        """Return the field called ``name``; raise ``KeyError`` if there is none."""
        for item in self.fields:
            if item.name == name:
                return item
        raise KeyError(name)


def _split_entry(entry):
    try:
        parts = tuple(entry)
    except TypeError:
        raise PacketDefinitionError(
            "field definitions must be (name, type) or (name, type, attributes)"
        ) from None
    if len(parts) == 2:
        return parts[0], parts[1], None
    if len(parts) == 3:
        return parts
    raise PacketDefinitionError(
        "field definitions must be (name, type) or (name, type, attributes)"
    )


def _attribute_pairs(attributes):
    if attributes is None:
        return []
    if isinstance(attributes, Mapping):
        return list(attributes.items())
    pairs = []
    for item in attributes:
        if isinstance(item, str):
            pairs.append((item, True))
        else:
            key, value = item
            pairs.append((key, value))
    return pairs


def _construct_with_types(field_name, value):
    if isinstance(value, str):
        value = [value]
    types = list(value)
    if not types:
        raise PacketDefinitionError(
            f"{field_name}: #[construct_with] must have at least one argument"
        )
    result = []
    for ty_str in types:
        if not isinstance(ty_str, str):
            raise PacketDefinitionError(
                f"{field_name}: #[construct_with] should be of the form #[construct_with(<types>)]"
            )
        ty = make_type(ty_str, False)
        if not isinstance(ty, Primitive):
            raise PacketDefinitionError(
                f"{field_name}: arguments to #[construct_with] must be primitives"
            )
        result.append(ty)
    return tuple(result)


def _check_vector(field_name, ty):
    inner = ty.inner
    if isinstance(inner, Vector):
        raise PacketDefinitionError(
            f"{field_name}: variable length fields may not contain vectors"
        )
    if isinstance(inner, Primitive) and inner.name != "u8" and inner.size % 8:
        raise PacketDefinitionError(f"{field_name}: unimplemented variable length field")


def define_packet(name, fields):
    """Validate a packet definition and return a :class:`PacketSpec`."""
    if not isinstance(name, str) or not name.isidentifier():
        raise PacketDefinitionError(f"invalid packet name: {name!r}")

    entries = [_split_entry(entry) for entry in fields]
    for field_name, _, _ in entries:
        if not isinstance(field_name, str) or not field_name:
            raise PacketDefinitionError("all fields in a packet must be named")
    names = [field_name for field_name, _, _ in entries]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise PacketDefinitionError(f"duplicate field name: {duplicates[0]}")

    payload_name = None
    result = []
    for field_name, ty_str, attributes in entries:
        is_payload = False
        length = None
        length_fn = None
        construct_with = ()
        seen = []
        for key, value in _attribute_pairs(attributes):
            seen.append(key)
            if key not in _KNOWN_ATTRIBUTES:
                raise PacketDefinitionError(f"{field_name}: unknown attribute: {key}")
            if key == "payload":
                if not isinstance(value, bool):
                    raise PacketDefinitionError(f"{field_name}: unknown attribute: payload")
                if value:
                    if payload_name is not None:
                        raise PacketDefinitionError(
                            f"{field_name}: packet may not have multiple payloads "
                            f"(first payload defined here: {payload_name})"
                        )
                    is_payload = True
                    payload_name = field_name
            elif key == "length_fn":
                if not (isinstance(value, str) or callable(value)):
                    raise PacketDefinitionError(
                        f'{field_name}: #[length_fn] should be used as '
                        f'#[length_fn = "name_of_function"]'
                    )
                length_fn, length = value, None
            elif key == "length":
                if not isinstance(value, str):
                    raise PacketDefinitionError(
                        f'{field_name}: #[length] should be used as '
                        f'#[length = "field_name and/or arithmetic expression"]'
                    )
                others = [n for n in names if n != field_name]
                length, length_fn = parse_length_expr(value, others), None
            else:
                construct_with = _construct_with_types(field_name, value)

        if len(set(seen)) != len(seen):
            raise PacketDefinitionError(
                f"{field_name}: cannot have two attributes with the same name"
            )

        if not isinstance(ty_str, str):
            raise PacketDefinitionError(f"{field_name}: field type must be a string")
        try:
            ty = make_type(ty_str, True)
        except PacketDefinitionError as exc:
            raise PacketDefinitionError(f"{field_name}: {exc}") from None

        has_length = length is not None or length_fn is not None
        if isinstance(ty, Vector):
            if not is_payload and not has_length:
                raise PacketDefinitionError(
                    f'{field_name}: variable length field must have #[length = ""] '
                    f'or #[length_fn = ""] attribute'
                )
            _check_vector(field_name, ty)
        elif isinstance(ty, Misc) and not construct_with:
            raise PacketDefinitionError(
                f"{field_name}: non-primitive field types must specify #[construct_with]"
            )

        result.append(
            Field(
                name=field_name,
                ty=ty,
                is_payload=is_payload,
                length=length,
                length_fn=length_fn,
                construct_with=construct_with,
            )
        )

    if payload_name is None:
        raise PacketDefinitionError("#[packet]'s must contain a payload")

    for index, item in enumerate(result):
        if item.is_payload and not item.has_length and index != len(result) - 1:
            raise PacketDefinitionError(
                f"{item.name}: #[payload] must specify a #[length_fn], "
                f"unless it is the last field of a packet"
            )

    return PacketSpec(base_name=name, fields=tuple(result))
"""Views over packet bytes, built from packet definitions.

``packet_class`` turns a :class:`~pktdef.spec.PacketSpec` into a subclass
of :class:`Packet`.  An instance wraps a buffer without copying it: a
``bytes`` buffer gives a read-only view, a ``bytearray`` a writable one
whose changes show in the buffer itself.  Records, as produced by
``from_packet`` and consumed by ``populate``, are plain dictionaries.
"""

from pktdef.accessors import (
    layout,
    read_primitive,
    read_vector,
    write_primitive,
    write_vector,
)
from pktdef.types import Misc, PacketDefinitionError, Primitive, Vector

__all__ = ["Packet", "PacketRegistry", "packet_class"]


def _as_view(data):
    view = memoryview(data)
    if view.format != "B":
        view = view.cast("B")
    return view


def _check_range(prim, value, name):
    bits = int(prim.storage_type[1:])
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < (1 << bits):
        raise ValueError(f"{name}: value {value!r} does not fit in {prim.storage_type}")


class Packet:
    """A packet laid over a buffer; subclasses come from :func:`packet_class`."""

    spec = None
    _by_name = {}
    _length_fns = {}
    _constants = {}
    _registry = None
    _fixed_bits = 0
    _min_size = 0
    _payload_entry = None
    _length_names = ()

    def __init__(self, data):
        if type(self).spec is None:
            raise TypeError("create packet types with packet_class()")
        view = _as_view(data)
        if len(view) < self._min_size:
            raise ValueError(
                f"{self.spec.packet_name()} needs at least {self._min_size} bytes, "
                f"got {len(view)}"
            )
        self._buf = view

    @classmethod
    def new(cls, data):
        """Wrap ``data``; raise ``ValueError`` if it is shorter than the minimum."""
        return cls(data)

    @classmethod
    def minimum_packet_size(cls):
        """Total size in bytes of the fixed-size fields, rounded up."""
        return cls._min_size

    @classmethod
    def struct_size(cls, record):
        """Size in bytes of ``record`` once written as a packet."""
        variable = sum(
            len(record[field.name]) for field in cls.spec.fields if isinstance(field.ty, Vector)
        )
        return cls._fixed_bits // 8 + variable

    @classmethod
    def iter_packets(cls, data):
        """Yield consecutive packets from ``data`` until too few bytes remain."""
        view = _as_view(data)
        while len(view) > 0:
            try:
                packet = cls(view)
            except ValueError:
                return
            yield packet
            step = min(packet.packet_size(), len(view))
            if step == 0:
                return
            view = view[step:]

    @property
    def writable(self):
        """Whether the underlying buffer can be changed."""
        return not self._buf.readonly

    def _entry(self, name):
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"{self.spec.base_name} has no field {name!r}") from None

    def _length(self, name):
        field = self._by_name[name].field
        if field.length_fn is not None:
            return int(self._length_fns[name](self))
        if field.length is not None:
            return field.length.evaluate(self.get, self._constants)
        return None

    def _offset(self, entry, bit):
        return bit // 8 + sum(self._length(name) for name in entry.preceding)

    def _vector_bounds(self, entry):
        start = self._offset(entry, entry.bit_offset)
        length = self._length(entry.name)
        size = len(self._buf)
        end = size if length is None else min(start + length, size)
        if start > end:
            raise ValueError(f"{entry.name} lies beyond the end of the packet")
        return start, end

    def _inner_class(self, name):
        if self._registry is None:
            raise LookupError(f"no registry to resolve packet type {name}")
        return self._registry.get(name)

    def _require_writable(self):
        if not self.writable:
            raise TypeError(f"{self.spec.packet_name()} is read-only")

    def packet_size(self):
        """Size in bytes of this packet, including variable-length fields."""
        return self._fixed_bits // 8 + sum(self._length(name) for name in self._length_names)

    def payload(self):
        """Bytes of the payload field."""
        entry = self._payload_entry
        size = len(self._buf)
        start = self._offset(entry, entry.bit_offset)
        if size <= start:
            return b""
        length = self._length(entry.name)
        end = size if length is None else start + length
        if end < start or end > size:
            raise ValueError(f"payload needs bytes {start}..{end}, packet has {size}")
        return bytes(self._buf[start:end])

    def get(self, name):
        """Value of field ``name``.

        Primitives give an int, composite fields a tuple of ints, vectors a
        list (of ints or of records) and the payload its bytes.
        """
        entry = self._entry(name)
        field = entry.field
        ty = field.ty
        if field.is_payload:
            return self.payload()
        if isinstance(ty, Primitive):
            bit, ops = entry.parts[0]
            return read_primitive(self._buf, self._offset(entry, bit), ops)
        if isinstance(ty, Misc):
            return tuple(
                read_primitive(self._buf, self._offset(entry, bit), ops) for bit, ops in entry.parts
            )
        start, end = self._vector_bounds(entry)
        if isinstance(ty.inner, Primitive):
            return read_vector(self._buf, start, end - start, entry.element_width, entry.element_ops)
        inner = self._inner_class(ty.inner.name)
        return [packet.from_packet() for packet in inner.iter_packets(self._buf[start:end])]

    def set(self, name, value):
        """Write ``value`` into field ``name``; the buffer must be writable."""
        self._require_writable()
        entry = self._entry(name)
        field = entry.field
        ty = field.ty
        if isinstance(ty, Primitive):
            bit, ops = entry.parts[0]
            _check_range(ty, value, name)
            write_primitive(self._buf, self._offset(entry, bit), ops, value)
        elif isinstance(ty, Misc):
            if hasattr(value, "to_primitive_values"):
                values = tuple(value.to_primitive_values())
            else:
                values = tuple(value)
            if len(values) != len(entry.parts):
                raise ValueError(f"{name}: expected {len(entry.parts)} values, got {len(values)}")
            for (bit, ops), arg, item in zip(entry.parts, field.construct_with, values):
                _check_range(arg, item, name)
                write_primitive(self._buf, self._offset(entry, bit), ops, item)
        elif isinstance(ty.inner, Primitive):
            values = list(value)
            for item in values:
                _check_range(ty.inner, item, name)
            start = self._offset(entry, entry.bit_offset)
            write_vector(
                self._buf,
                start,
                values,
                entry.element_width,
                entry.element_ops,
                self._length(name),
            )
        else:
            self._write_records(entry, value)

    def _write_records(self, entry, records):
        inner = self._inner_class(entry.field.ty.inner.name)
        current = self._offset(entry, entry.bit_offset)
        length = self._length(entry.name)
        end = None if length is None else current + length
        for record in records:
            packet = inner(self._buf[current:])
            packet.populate(record)
            current += packet.packet_size()
            if end is not None and current > end:
                raise ValueError(f"{entry.name}: records overrun the field length {length}")

    def raw(self, name):
        """Bytes of a variable-length field, without decoding them."""
        entry = self._entry(name)
        if entry.field.is_payload:
            return self.payload()
        if not isinstance(entry.field.ty, Vector):
            raise TypeError(f"{name} is not a variable length field")
        start, end = self._vector_bounds(entry)
        return bytes(self._buf[start:end])

    def from_packet(self):
        """Decode every field into a record dictionary."""
        return {field.name: self.get(field.name) for field in self.spec.fields}

    def populate(self, record):
        """Write every field from ``record``, in definition order."""
        for field in self.spec.fields:
            self.set(field.name, record[field.name])

    def to_bytes(self):
        """A copy of the whole underlying buffer."""
        return bytes(self._buf)

    def __eq__(self, other):
        if not isinstance(other, Packet):
            return NotImplemented
        return type(self) is type(other) and bytes(self._buf) == bytes(other._buf)

    __hash__ = None

    def __repr__(self):
        name = self.spec.packet_name_mut() if self.writable else self.spec.packet_name()
        body = "".join(
            f"{field.name} : {self.get(field.name)!r}, "
            for field in self.spec.fields
            if not field.is_payload
        )
        return f"{name} {{ {body} }}"


def packet_class(spec, registry=None, length_fns=None, constants=None):
    """Create the :class:`Packet` subclass for ``spec``.

    ``length_fns`` maps the names used by ``length_fn`` attributes to
    callables taking the packet; ``constants`` gives values for constants in
    length expressions; ``registry`` resolves packet types nested in vectors.
    """
    available = dict(length_fns or {})
    resolved = {}
    for field in spec.fields:
        if field.length_fn is None:
            continue
        if callable(field.length_fn):
            resolved[field.name] = field.length_fn
            continue
        try:
            resolved[field.name] = available[field.length_fn]
        except KeyError:
            raise PacketDefinitionError(
                f"{field.name}: unknown length function: {field.length_fn}"
            ) from None

    entries = layout(spec)
    fixed_bits = max((entry.end_bit for entry in entries), default=0)
    namespace = {
        "__doc__": f"View over the bytes of a {spec.base_name} packet.",
        "__module__": __name__,
        "spec": spec,
        "_by_name": {entry.name: entry for entry in entries},
        "_length_fns": resolved,
        "_constants": dict(constants or {}),
        "_registry": registry,
        "_fixed_bits": fixed_bits,
        "_min_size": (fixed_bits + 7) // 8,
        "_payload_entry": next(entry for entry in entries if entry.field.is_payload),
        "_length_names": tuple(field.name for field in spec.fields if field.has_length),
    }
    return type(spec.packet_name(), (Packet,), namespace)


class PacketRegistry:
    """Packet types by name, so that packets can nest other packets."""

    def __init__(self):
        self._classes = {}

    def register(self, spec, length_fns=None, constants=None):
        """Create and record the packet type for ``spec``; return it."""
        cls = packet_class(spec, self, length_fns, constants)
        self._classes[spec.base_name] = cls
        return cls

    def get(self, name):
        """The packet type registered under base name ``name``."""
        try:
            return self._classes[name]
        except KeyError:
            raise KeyError(f"no packet type registered as {name!r}") from None

    def __contains__(self, name):
        return name in self._classes
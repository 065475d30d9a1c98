"""Textual rendering of field read and write operations.

These produce the expressions that describe how a field is assembled from,
or spread over, consecutive bytes of a packet; they are used for
diagnostics and documentation of a packet layout.
"""

__all__ = ["generate_accessor_op_str", "generate_sop_strings", "current_offset"]


def generate_accessor_op_str(name, ty, operations):
    """Render the expression that reads a field of type ``ty`` from ``name``.

    A single-byte read becomes one expression; wider reads bind each byte's
    contribution to ``b0``, ``b1``, ... and OR them together.
    """
    ops = list(operations)
    if not ops:
        raise ValueError("at least one operation is required")
    if len(ops) == 1:
        return str(ops[0]).replace("{}", f"({name}[co] as {ty})")
    lines = []
    for idx, op in enumerate(ops):
        expr = str(op).replace("{}", f"({name}[co + {idx}] as {ty})")
        lines.append(f"let b{idx} = ({expr}) as {ty};\n")
    combined = " | ".join(f"b{idx}" for idx in range(len(ops)))
    return "".join(lines) + f"\n{combined}\n"


def generate_sop_strings(operations):
    """Render the statements that write a value into consecutive bytes."""
    return "".join(
        str(sop).replace("{packet}", f"_self.packet[co + {idx}]").replace("{val}", "val") + ";\n"
        for idx, sop in enumerate(operations)
    )


def current_offset(bit_offset, offset_fns):
    """Render the byte offset after ``bit_offset`` bits and the given lengths."""
    return " + ".join([str(bit_offset // 8), *(str(fn) for fn in offset_fns)])
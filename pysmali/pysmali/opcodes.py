"""Dalvik opcode table: every mnemonic mapped to the operand shape it takes.

The shape names double as the ``kind`` discriminator of the instruction
models in :mod:`pysmali.instructions`.
"""

from __future__ import annotations

from pysmali.literals import fits_width

NO_OPERANDS = "no-operands"  # 10x
ONE_REGISTER = "one-register"  # 11x
TWO_REGISTERS = "two-registers"  # 12x, 22x, 32x
THREE_REGISTERS = "three-registers"  # 23x
CONST = "const"  # 11n, 21s, 31i, 21h, 51l
CONST_STRING = "const-string"  # 21c, 31c
TYPE = "type"  # 21c type
TWO_REGISTERS_TYPE = "two-registers-type"  # 22c type
STATIC_FIELD = "static-field"  # 21c field
INSTANCE_FIELD = "instance-field"  # 22c field
INVOKE = "invoke"  # 35c, 3rc method
FILLED_NEW_ARRAY = "filled-new-array"  # 35c, 3rc type
INVOKE_POLYMORPHIC = "invoke-polymorphic"  # 45cc, 4rcc
INVOKE_CUSTOM = "invoke-custom"  # 35c, 3rc call site
CONST_METHOD_HANDLE = "const-method-handle"  # 21c
CONST_METHOD_TYPE = "const-method-type"  # 21c
GOTO = "goto"  # 10t, 20t, 30t
IF_TEST = "if-test"  # 22t
IF_TEST_ZERO = "if-test-zero"  # 21t
PAYLOAD = "payload"  # 31t
BINARY_LITERAL = "binary-literal"  # 22s, 22b

_INT_BINOPS = ("add", "sub", "mul", "div", "rem", "and", "or", "xor", "shl", "shr", "ushr")
_FLOAT_BINOPS = ("add", "sub", "mul", "div", "rem")
_ARRAY_SUFFIXES = ("", "-wide", "-object", "-boolean", "-byte", "-char", "-short")


def _binops() -> list[str]:
    ops = [f"{op}-int" for op in _INT_BINOPS]
    ops += [f"{op}-long" for op in _INT_BINOPS]
    ops += [f"{op}-float" for op in _FLOAT_BINOPS]
    ops += [f"{op}-double" for op in _FLOAT_BINOPS]
    return ops


_SHAPES: dict[str, list[str]] = {
    NO_OPERANDS: ["nop", "return-void"],
    ONE_REGISTER: [
        "move-result",
        "move-result-wide",
        "move-result-object",
        "move-exception",
        "return",
        "return-wide",
        "return-object",
        "monitor-enter",
        "monitor-exit",
        "throw",
    ],
    TWO_REGISTERS: [
        "move",
        "move/from16",
        "move/16",
        "move-wide",
        "move-wide/from16",
        "move-wide/16",
        "move-object",
        "move-object/from16",
        "move-object/16",
        "array-length",
        "neg-int",
        "not-int",
        "neg-long",
        "not-long",
        "neg-float",
        "neg-double",
        "int-to-long",
        "int-to-float",
        "int-to-double",
        "long-to-int",
        "long-to-float",
        "long-to-double",
        "float-to-int",
        "float-to-long",
        "float-to-double",
        "double-to-int",
        "double-to-long",
        "double-to-float",
        "int-to-byte",
        "int-to-char",
        "int-to-short",
    ]
    + [f"{op}/2addr" for op in _binops()],
    THREE_REGISTERS: ["cmpl-float", "cmpg-float", "cmpl-double", "cmpg-double", "cmp-long"]
    + [f"aget{s}" for s in _ARRAY_SUFFIXES]
    + [f"aput{s}" for s in _ARRAY_SUFFIXES]
    + _binops(),
    CONST: [
        "const/4",
        "const/16",
        "const",
        "const/high16",
        "const-wide/16",
        "const-wide/32",
        "const-wide",
        "const-wide/high16",
    ],
    CONST_STRING: ["const-string", "const-string/jumbo"],
    TYPE: ["const-class", "check-cast", "new-instance"],
    TWO_REGISTERS_TYPE: ["instance-of", "new-array"],
    STATIC_FIELD: [f"sget{s}" for s in _ARRAY_SUFFIXES] + [f"sput{s}" for s in _ARRAY_SUFFIXES],
    INSTANCE_FIELD: [f"iget{s}" for s in _ARRAY_SUFFIXES] + [f"iput{s}" for s in _ARRAY_SUFFIXES],
    INVOKE: [
        f"invoke-{kind}{suffix}"
        for kind in ("virtual", "super", "direct", "static", "interface")
        for suffix in ("", "/range")
    ],
    FILLED_NEW_ARRAY: ["filled-new-array", "filled-new-array/range"],
    INVOKE_POLYMORPHIC: ["invoke-polymorphic", "invoke-polymorphic/range"],
    INVOKE_CUSTOM: ["invoke-custom", "invoke-custom/range"],
    CONST_METHOD_HANDLE: ["const-method-handle"],
    CONST_METHOD_TYPE: ["const-method-type"],
    GOTO: ["goto", "goto/16", "goto/32"],
    IF_TEST: ["if-eq", "if-ne", "if-lt", "if-ge", "if-gt", "if-le"],
    IF_TEST_ZERO: ["if-eqz", "if-nez", "if-ltz", "if-gez", "if-gtz", "if-lez"],
    PAYLOAD: ["packed-switch", "sparse-switch", "fill-array-data"],
    BINARY_LITERAL: [
        f"{op}-int/lit16" for op in ("add", "mul", "div", "rem", "and", "or", "xor")
    ]
    + ["rsub-int"]
    + [f"{op}-int/lit8" for op in _INT_BINOPS if op != "sub"]
    + ["rsub-int/lit8"],
}

OPCODE_SHAPES: dict[str, str] = {op: shape for shape, ops in _SHAPES.items() for op in ops}

WIDE_CONSTS = frozenset(op for op in _SHAPES[CONST] if op.startswith("const-wide"))

# Literal width in bits per opcode, and the low bits that must be zero for /high16.
_LITERAL_BITS = {
    "const/4": 4,
    "const/16": 16,
    "const": 32,
    "const/high16": 32,
    "const-wide/16": 16,
    "const-wide/32": 32,
    "const-wide": 64,
    "const-wide/high16": 64,
}
_LITERAL_BITS.update({op: 16 for op in _SHAPES[BINARY_LITERAL] if not op.endswith("/lit8")})
_LITERAL_BITS.update({op: 8 for op in _SHAPES[BINARY_LITERAL] if op.endswith("/lit8")})
_ZERO_LOW_BITS = {"const/high16": 16, "const-wide/high16": 48}


def opcodes_for(shape: str) -> tuple[str, ...]:
    return tuple(_SHAPES[shape])


def is_range(opcode: str) -> bool:
    return opcode.endswith("/range")


def literal_error(opcode: str, value: int) -> str | None:
    """Describe why ``value`` cannot be the literal of ``opcode``, or return None."""
    bits = _LITERAL_BITS[opcode]
    if not fits_width(value, bits):
        return f"literal {value} does not fit the {bits}-bit operand of {opcode}"
    low = _ZERO_LOW_BITS.get(opcode)
    if low is not None and value & ((1 << low) - 1):
        return f"{opcode} literal {value:#x} must have its low {low} bits clear"
    return None

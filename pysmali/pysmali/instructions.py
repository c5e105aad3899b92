"""Instruction model: one pydantic model per Dalvik operand shape, plus the
pseudo instructions (labels, debug directives, try/catch ranges and payload
tables) that make up a method body.

:data:`SmaliInstruction` is the discriminated union of all of them, keyed on
``kind``.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

from pysmali import opcodes
from pysmali.literals import fits_width
from pysmali.signatures import (
    FieldReference,
    MethodReference,
    MethodSignature,
    ObjectIdentifier,
    TypeSignature,
)

Register = Annotated[str, StringConstraints(pattern=r"^[vp][0-9]+$")]
LabelName = Annotated[str, StringConstraints(pattern=r"^[\w$\-]+$")]


def register_number(register: str) -> int:
    return int(register[1:])


class _Opcode(BaseModel):
    """Base for real Dalvik instructions: ``opcode`` must belong to the model's shape."""

    model_config = ConfigDict(validate_by_name=True)

    opcode: str

    @model_validator(mode="after")
    def _check_opcode(self):
        if opcodes.OPCODE_SHAPES.get(self.opcode) != self.kind:
            raise ValueError(f"{self.opcode!r} is not a {self.kind} opcode")
        return self

    @property
    def mnemonic(self) -> str:
        return self.opcode


class _RegisterList(_Opcode):
    """Instructions taking ``{v0, v1}`` or, for ``/range`` opcodes, ``{v0 .. v3}``."""

    registers: list[Register] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_registers(self):
        if not self.is_range:
            if len(self.registers) > 5:
                raise ValueError(f"{self.opcode} takes at most 5 registers")
            return self
        if self.registers:
            prefix = self.registers[0][0]
            first = register_number(self.registers[0])
            expected = [f"{prefix}{first + i}" for i in range(len(self.registers))]
            if self.registers != expected:
                raise ValueError(f"{self.opcode} registers must be a contiguous range")
        return self

    @property
    def is_range(self) -> bool:
        return opcodes.is_range(self.opcode)


# ── Dalvik operand shapes ────────────────────────────────────────────────────


class NoOperands(_Opcode):
    kind: Literal["no-operands"] = "no-operands"


class OneRegister(_Opcode):
    kind: Literal["one-register"] = "one-register"
    reg: Register = Field(alias="register")


class TwoRegisters(_Opcode):
    """``move``-family, unary and ``/2addr`` instructions: ``op vA, vB``."""

    kind: Literal["two-registers"] = "two-registers"
    destination: Register
    source: Register


class ThreeRegisters(_Opcode):
    """``op vA, vB, vC``.

    For ``aput`` the first register is the value being stored, not a destination.
    """

    kind: Literal["three-registers"] = "three-registers"
    destination: Register
    first: Register
    second: Register


class ConstLiteral(_Opcode):
    kind: Literal["const"] = "const"
    reg: Register = Field(alias="register")
    value: int

    @model_validator(mode="after")
    def _check_literal(self):
        error = opcodes.literal_error(self.opcode, self.value)
        if error:
            raise ValueError(error)
        return self

    @property
    def is_wide(self) -> bool:
        return self.opcode in opcodes.WIDE_CONSTS


class ConstString(_Opcode):
    kind: Literal["const-string"] = "const-string"
    reg: Register = Field(alias="register")
    value: str


class TypeOperation(_Opcode):
    """``const-class``, ``check-cast`` and ``new-instance``."""

    kind: Literal["type"] = "type"
    reg: Register = Field(alias="register")
    type: TypeSignature


class TwoRegistersType(_Opcode):
    """``instance-of`` and ``new-array``."""

    kind: Literal["two-registers-type"] = "two-registers-type"
    destination: Register
    source: Register
    type: TypeSignature


class StaticFieldOperation(_Opcode):
    kind: Literal["static-field"] = "static-field"
    reg: Register = Field(alias="register")
    field: FieldReference


class InstanceFieldOperation(_Opcode):
    kind: Literal["instance-field"] = "instance-field"
    reg: Register = Field(alias="register")
    object_register: Register
    field: FieldReference


class Invoke(_RegisterList):
    kind: Literal["invoke"] = "invoke"
    method: MethodReference

    @property
    def invoke_kind(self) -> str:
        """``virtual``, ``super``, ``direct``, ``static`` or ``interface``."""
        return self.opcode[len("invoke-") :].split("/")[0]


class FilledNewArray(_RegisterList):
    kind: Literal["filled-new-array"] = "filled-new-array"
    type: TypeSignature


class InvokePolymorphic(_RegisterList):
    kind: Literal["invoke-polymorphic"] = "invoke-polymorphic"
    method: MethodReference
    prototype: MethodSignature


class InvokeCustom(_RegisterList):
    """``invoke-custom``; the call site is kept as written."""

    kind: Literal["invoke-custom"] = "invoke-custom"
    call_site: str


class ConstMethodHandle(_Opcode):
    """``const-method-handle vA, invoke-static@Lx;->m()V``; the handle is kept as written."""

    kind: Literal["const-method-handle"] = "const-method-handle"
    reg: Register = Field(alias="register")
    method_handle: str


class ConstMethodType(_Opcode):
    kind: Literal["const-method-type"] = "const-method-type"
    reg: Register = Field(alias="register")
    prototype: MethodSignature


class Goto(_Opcode):
    kind: Literal["goto"] = "goto"
    target: LabelName


class IfTest(_Opcode):
    kind: Literal["if-test"] = "if-test"
    first: Register
    second: Register
    target: LabelName


class IfTestZero(_Opcode):
    kind: Literal["if-test-zero"] = "if-test-zero"
    reg: Register = Field(alias="register")
    target: LabelName


class PayloadReference(_Opcode):
    """``packed-switch``, ``sparse-switch`` and ``fill-array-data``; ``target`` labels the payload."""

    kind: Literal["payload"] = "payload"
    reg: Register = Field(alias="register")
    target: LabelName


class BinaryLiteral(_Opcode):
    """``/lit8`` and ``/lit16`` arithmetic: ``op vA, vB, literal``."""

    kind: Literal["binary-literal"] = "binary-literal"
    destination: Register
    source: Register
    value: int

    @model_validator(mode="after")
    def _check_literal(self):
        error = opcodes.literal_error(self.opcode, self.value)
        if error:
            raise ValueError(error)
        return self


# ── Pseudo instructions ──────────────────────────────────────────────────────


class Label(BaseModel):
    kind: Literal["label"] = "label"
    name: LabelName


class LineNumber(BaseModel):
    kind: Literal["line"] = "line"
    line: int = Field(ge=0)


class Catch(BaseModel):
    """A ``.catch`` range, or ``.catchall`` when ``exception`` is None."""

    kind: Literal["catch"] = "catch"
    exception: ObjectIdentifier | None = None
    start: LabelName
    end: LabelName
    handler: LabelName

    @property
    def is_catch_all(self) -> bool:
        return self.exception is None


class LocalStart(BaseModel):
    """``.local vA, "name":Type[, "signature"]``; a None name renders as ``null``."""

    model_config = ConfigDict(validate_by_name=True)

    kind: Literal["local"] = "local"
    reg: Register = Field(alias="register")
    name: str | None = None
    type: TypeSignature | None = None
    signature: str | None = None

    @model_validator(mode="after")
    def _check_debug_info(self):
        if self.type is None and (self.name is not None or self.signature is not None):
            raise ValueError(".local with a name or signature needs a type")
        return self


class LocalEnd(BaseModel):
    model_config = ConfigDict(validate_by_name=True)

    kind: Literal["end-local"] = "end-local"
    reg: Register = Field(alias="register")


class LocalRestart(BaseModel):
    model_config = ConfigDict(validate_by_name=True)

    kind: Literal["restart-local"] = "restart-local"
    reg: Register = Field(alias="register")


class DebugMarker(BaseModel):
    kind: Literal["debug-marker"] = "debug-marker"
    directive: Literal["prologue", "epilogue"]


class ArrayData(BaseModel):
    kind: Literal["array-data"] = "array-data"
    element_width: Literal[1, 2, 4, 8]
    values: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_values(self):
        for value in self.values:
            if not fits_width(value, self.element_width * 8):
                raise ValueError(f"array element {value} does not fit in {self.element_width} bytes")
        return self


class SwitchEntry(BaseModel):
    key: int
    target: LabelName


class PackedSwitchData(BaseModel):
    kind: Literal["packed-switch-data"] = "packed-switch-data"
    first_key: int
    targets: list[LabelName] = Field(default_factory=list)

    @property
    def entries(self) -> list[SwitchEntry]:
        return [SwitchEntry(key=self.first_key + i, target=t) for i, t in enumerate(self.targets)]


class SparseSwitchData(BaseModel):
    kind: Literal["sparse-switch-data"] = "sparse-switch-data"
    entries: list[SwitchEntry] = Field(default_factory=list)


DALVIK_INSTRUCTION_TYPES = (
    NoOperands,
    OneRegister,
    TwoRegisters,
    ThreeRegisters,
    ConstLiteral,
    ConstString,
    TypeOperation,
    TwoRegistersType,
    StaticFieldOperation,
    InstanceFieldOperation,
    Invoke,
    FilledNewArray,
    InvokePolymorphic,
    InvokeCustom,
    ConstMethodHandle,
    ConstMethodType,
    Goto,
    IfTest,
    IfTestZero,
    PayloadReference,
    BinaryLiteral,
)

PSEUDO_INSTRUCTION_TYPES = (
    Label,
    LineNumber,
    Catch,
    LocalStart,
    LocalEnd,
    LocalRestart,
    DebugMarker,
    ArrayData,
    PackedSwitchData,
    SparseSwitchData,
)

INSTRUCTION_TYPES = DALVIK_INSTRUCTION_TYPES + PSEUDO_INSTRUCTION_TYPES

SmaliInstruction = Annotated[Union[INSTRUCTION_TYPES], Field(discriminator="kind")]

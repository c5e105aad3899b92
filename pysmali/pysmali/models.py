"""Pydantic models for smali classes, their members and annotations."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pysmali.instructions import (
    Catch,
    Label,
    LocalEnd,
    LocalRestart,
    LocalStart,
    Register,
    SmaliInstruction,
)
from pysmali.signatures import FieldReference, MethodSignature, ObjectIdentifier, TypeSignature


class SmaliSettings(BaseModel):
    file_extension: str = ".smali"
    encoding: str = "utf-8"
    indent: str = "    "


# ── Access flags ─────────────────────────────────────────────────────────────


class AccessFlag(str, Enum):
    """Smali access-flag keywords, declared in the order they are written."""

    PUBLIC = "public"
    PRIVATE = "private"
    PROTECTED = "protected"
    STATIC = "static"
    FINAL = "final"
    SYNCHRONIZED = "synchronized"
    VOLATILE = "volatile"
    BRIDGE = "bridge"
    TRANSIENT = "transient"
    VARARGS = "varargs"
    NATIVE = "native"
    INTERFACE = "interface"
    ABSTRACT = "abstract"
    STRICTFP = "strictfp"
    SYNTHETIC = "synthetic"
    ANNOTATION = "annotation"
    ENUM = "enum"
    CONSTRUCTOR = "constructor"
    DECLARED_SYNCHRONIZED = "declared-synchronized"

    @property
    def bit(self) -> int:
        """The dex ``access_flags`` bit; fields and methods reuse 0x40 and 0x80."""
        return _ACCESS_BITS[self]


_ACCESS_BITS = {
    AccessFlag.PUBLIC: 0x0001,
    AccessFlag.PRIVATE: 0x0002,
    AccessFlag.PROTECTED: 0x0004,
    AccessFlag.STATIC: 0x0008,
    AccessFlag.FINAL: 0x0010,
    AccessFlag.SYNCHRONIZED: 0x0020,
    AccessFlag.VOLATILE: 0x0040,
    AccessFlag.BRIDGE: 0x0040,
    AccessFlag.TRANSIENT: 0x0080,
    AccessFlag.VARARGS: 0x0080,
    AccessFlag.NATIVE: 0x0100,
    AccessFlag.INTERFACE: 0x0200,
    AccessFlag.ABSTRACT: 0x0400,
    AccessFlag.STRICTFP: 0x0800,
    AccessFlag.SYNTHETIC: 0x1000,
    AccessFlag.ANNOTATION: 0x2000,
    AccessFlag.ENUM: 0x4000,
    AccessFlag.CONSTRUCTOR: 0x10000,
    AccessFlag.DECLARED_SYNCHRONIZED: 0x20000,
}


def access_mask(flags: set[AccessFlag]) -> int:
    mask = 0
    for flag in flags:
        mask |= flag.bit
    return mask


def ordered_flags(flags: set[AccessFlag]) -> list[AccessFlag]:
    return [flag for flag in AccessFlag if flag in flags]


class HiddenApiRestriction(str, Enum):
    """Hidden-API list keywords that baksmali writes after a member's access flags.

    They carry no dex access bit and only appear on fields and methods.
    """

    WHITELIST = "whitelist"
    GREYLIST = "greylist"
    BLACKLIST = "blacklist"
    GREYLIST_MAX_O = "greylist-max-o"
    GREYLIST_MAX_P = "greylist-max-p"
    GREYLIST_MAX_Q = "greylist-max-q"
    GREYLIST_MAX_R = "greylist-max-r"
    CORE_PLATFORM_API = "core-platform-api"
    TEST_API = "test-api"


# ── Annotations ──────────────────────────────────────────────────────────────


class AnnotationVisibility(str, Enum):
    BUILD = "build"
    RUNTIME = "runtime"
    SYSTEM = "system"


class AnnotationValueType(str, Enum):
    LITERAL = "literal"
    ARRAY = "array"
    SUBANNOTATION = "subannotation"
    ENUM = "enum"


class AnnotationValue(BaseModel):
    """One annotation element value.

    Literals (numbers, strings, chars, booleans, ``null``, types and member
    references) are kept exactly as written in ``value``.
    """

    type: AnnotationValueType
    value: str | None = None
    values: list[AnnotationValue] | None = None
    annotation: Annotation | None = None
    field: FieldReference | None = None

    @model_validator(mode="after")
    def _check_payload(self) -> AnnotationValue:
        required = {
            AnnotationValueType.LITERAL: self.value,
            AnnotationValueType.ARRAY: self.values,
            AnnotationValueType.SUBANNOTATION: self.annotation,
            AnnotationValueType.ENUM: self.field,
        }
        if required[self.type] is None:
            raise ValueError(f"{self.type.value} annotation value is missing its payload")
        return self


class Annotation(BaseModel):
    """An ``.annotation`` block; sub-annotations have no visibility."""

    annotation_class: ObjectIdentifier
    visibility: AnnotationVisibility | None = None
    values: dict[str, AnnotationValue] = Field(default_factory=dict)


AnnotationValue.model_rebuild()
Annotation.model_rebuild()


# ── Fields ───────────────────────────────────────────────────────────────────


class SmaliField(BaseModel):
    name: str
    type: TypeSignature
    access_flags: set[AccessFlag] = Field(default_factory=set)
    hidden_api: set[HiddenApiRestriction] = Field(default_factory=set)
    initial_value: str | None = None
    annotations: list[Annotation] = Field(default_factory=list)

    @property
    def is_static(self) -> bool:
        return AccessFlag.STATIC in self.access_flags


# ── Methods ──────────────────────────────────────────────────────────────────


class MethodParameter(BaseModel):
    model_config = ConfigDict(validate_by_name=True)

    reg: Register = Field(alias="register")
    name: str | None = None
    annotations: list[Annotation] = Field(default_factory=list)


class TryCatch(BaseModel):
    """A try range (``start`` .. ``end`` labels) routed to ``handler``."""

    start: str
    end: str
    handler: str
    exception: ObjectIdentifier | None = None


class LocalVariableRange(BaseModel):
    """Where a ``.local`` is live: body indices ``start`` up to ``end`` (exclusive).

    ``end`` is None when nothing closes the variable before the body ends.
    """

    model_config = ConfigDict(validate_by_name=True)

    reg: str = Field(alias="register")
    name: str | None = None
    type: TypeSignature | None = None
    signature: str | None = None
    start: int
    end: int | None = None


class SmaliMethod(BaseModel):
    name: str
    signature: MethodSignature
    access_flags: set[AccessFlag] = Field(default_factory=set)
    hidden_api: set[HiddenApiRestriction] = Field(default_factory=set)
    registers: int | None = None
    locals: int | None = None
    parameters: list[MethodParameter] = Field(default_factory=list)
    annotations: list[Annotation] = Field(default_factory=list)
    instructions: list[SmaliInstruction] = Field(default_factory=list)

    @model_validator(mode="after")
    def _one_register_directive(self) -> SmaliMethod:
        if self.registers is not None and self.locals is not None:
            raise ValueError("a method declares either .registers or .locals, not both")
        return self

    @property
    def is_static(self) -> bool:
        return AccessFlag.STATIC in self.access_flags

    @property
    def is_constructor(self) -> bool:
        return self.name in ("<init>", "<clinit>")

    @property
    def descriptor(self) -> str:
        return self.name + self.signature.to_jni()

    @property
    def register_count(self) -> int | None:
        """Total registers: ``.registers``, or ``.locals`` plus the argument registers."""
        if self.registers is not None:
            return self.registers
        if self.locals is not None:
            return self.locals + self.signature.register_count(self.is_static)
        return None

    @property
    def labels(self) -> dict[str, int]:
        """Label name -> index of the label in ``instructions``."""
        return {item.name: i for i, item in enumerate(self.instructions) if isinstance(item, Label)}

    @property
    def try_catches(self) -> list[TryCatch]:
        return [
            TryCatch(start=item.start, end=item.end, handler=item.handler, exception=item.exception)
            for item in self.instructions
            if isinstance(item, Catch)
        ]

    @property
    def local_variables(self) -> list[LocalVariableRange]:
        ranges: list[LocalVariableRange] = []
        live: dict[str, LocalVariableRange] = {}
        declared: dict[str, LocalStart] = {}
        for i, item in enumerate(self.instructions):
            if isinstance(item, (LocalStart, LocalRestart)):
                source = item if isinstance(item, LocalStart) else declared.get(item.reg)
                if item.reg in live:
                    live.pop(item.reg).end = i
                entry = LocalVariableRange(
                    reg=item.reg,
                    name=source.name if source else None,
                    type=source.type if source else None,
                    signature=source.signature if source else None,
                    start=i,
                )
                if isinstance(item, LocalStart):
                    declared[item.reg] = item
                live[item.reg] = entry
                ranges.append(entry)
            elif isinstance(item, LocalEnd) and item.reg in live:
                live.pop(item.reg).end = i
        return ranges


# ── Class ────────────────────────────────────────────────────────────────────


class SmaliClass(BaseModel):
    access_flags: set[AccessFlag] = Field(default_factory=set)
    name: ObjectIdentifier
    super_class: ObjectIdentifier | None = None
    interfaces: list[ObjectIdentifier] = Field(default_factory=list)
    source: str | None = None
    annotations: list[Annotation] = Field(default_factory=list)
    fields: list[SmaliField] = Field(default_factory=list)
    methods: list[SmaliMethod] = Field(default_factory=list)

    @classmethod
    def from_smali(cls, text: str) -> SmaliClass:
        from pysmali.parser import parse_class

        return parse_class(text)

    @classmethod
    def read_from_file(cls, path: str | Path, settings: SmaliSettings | None = None) -> SmaliClass:
        from pysmali.files import read_class_from_file

        return read_class_from_file(path, settings)

    def to_smali(self, settings: SmaliSettings | None = None) -> str:
        from pysmali.writer import render_class

        return render_class(self, settings)

    def write_to_file(self, path: str | Path, settings: SmaliSettings | None = None) -> None:
        from pysmali.files import write_class_to_file

        write_class_to_file(self, path, settings)

    def find_field(self, name: str) -> SmaliField | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def find_methods(self, name: str) -> list[SmaliMethod]:
        return [m for m in self.methods if m.name == name]

    def find_method(self, name: str, descriptor: str | None = None) -> SmaliMethod | None:
        """First method called ``name``; ``descriptor`` (``(I)V``) narrows overloads."""
        for m in self.find_methods(name):
            if descriptor is None or m.signature.to_jni() == descriptor:
                return m
        return None

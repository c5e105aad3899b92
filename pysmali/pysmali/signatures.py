"""Type model: class names, type descriptors, method descriptors and member references."""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from pysmali.errors import SmaliSyntaxError

# Dex simple names: ASCII letters, digits, ``$ - _`` plus the non-ASCII ranges.
_SEGMENT = r"[\w$\-\u00a1-\U0010ffff]+"
_INTERNAL_NAME = re.compile(rf"{_SEGMENT}(?:/{_SEGMENT})*")
_JAVA_NAME = re.compile(rf"{_SEGMENT}(?:\.{_SEGMENT})*")
_MEMBER_NAME = re.compile(r"[^\s:;()\[\]/,{}\"'.]+")


def _bad_descriptor(message: str) -> SmaliSyntaxError:
    return SmaliSyntaxError("BAD_DESCRIPTOR", message)


# ── Class names ──────────────────────────────────────────────────────────────


class ObjectIdentifier(BaseModel):
    """A fully qualified class name.

    Stored in the slashed internal form (``com/basic/Test``) and convertible to
    the Java form (``com.basic.Test``) and the JNI form (``Lcom/basic/Test;``).
    """

    model_config = ConfigDict(frozen=True)

    name: str

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not _INTERNAL_NAME.fullmatch(value):
            raise ValueError(f"malformed class name {value!r}")
        return value

    @classmethod
    def from_java_type(cls, java_type: str) -> ObjectIdentifier:
        if not _JAVA_NAME.fullmatch(java_type):
            raise _bad_descriptor(f"malformed Java class name {java_type!r}")
        return cls(name=java_type.replace(".", "/"))

    @classmethod
    def from_jni_type(cls, jni_type: str) -> ObjectIdentifier:
        if (
            len(jni_type) < 3
            or not jni_type.startswith("L")
            or not jni_type.endswith(";")
            or not _INTERNAL_NAME.fullmatch(jni_type[1:-1])
        ):
            raise _bad_descriptor(f"malformed class descriptor {jni_type!r}")
        return cls(name=jni_type[1:-1])

    def as_java_type(self) -> str:
        return self.name.replace("/", ".")

    def as_jni_type(self) -> str:
        return f"L{self.name};"

    @property
    def package(self) -> str:
        """Dotted package name, empty for the default package."""
        return self.as_java_type().rpartition(".")[0]

    @property
    def simple_name(self) -> str:
        return self.name.rpartition("/")[2]

    def __str__(self) -> str:
        return self.as_jni_type()


# ── Type descriptors ─────────────────────────────────────────────────────────


class TypeKind(str, Enum):
    """Type variants, valued by their leading descriptor character."""

    VOID = "V"
    BOOL = "Z"
    BYTE = "B"
    CHAR = "C"
    SHORT = "S"
    INT = "I"
    LONG = "J"
    FLOAT = "F"
    DOUBLE = "D"
    OBJECT = "L"
    ARRAY = "["


_JAVA_PRIMITIVE_NAMES = {
    TypeKind.VOID: "void",
    TypeKind.BOOL: "boolean",
    TypeKind.BYTE: "byte",
    TypeKind.CHAR: "char",
    TypeKind.SHORT: "short",
    TypeKind.INT: "int",
    TypeKind.LONG: "long",
    TypeKind.FLOAT: "float",
    TypeKind.DOUBLE: "double",
}


class TypeSignature(BaseModel):
    """One JNI type: a primitive, ``void``, a class, or an array of either.

    Arrays hold a non-array ``element`` and a ``dimensions`` count, so
    ``[[I`` is ``ARRAY(element=INT, dimensions=2)``.
    """

    model_config = ConfigDict(frozen=True)

    kind: TypeKind
    object_type: ObjectIdentifier | None = None
    element: TypeSignature | None = None
    dimensions: int = 0

    @model_validator(mode="after")
    def _check_shape(self) -> TypeSignature:
        if self.kind is TypeKind.OBJECT:
            if self.object_type is None or self.element is not None or self.dimensions:
                raise ValueError("object types carry only an object_type")
        elif self.kind is TypeKind.ARRAY:
            if self.element is None or self.object_type is not None:
                raise ValueError("array types carry only an element type")
            if self.element.kind in (TypeKind.ARRAY, TypeKind.VOID):
                raise ValueError(f"invalid array element type {self.element.kind.name}")
            if self.dimensions < 1:
                raise ValueError("array dimensions must be at least 1")
        elif self.object_type is not None or self.element is not None or self.dimensions:
            raise ValueError(f"{self.kind.name} takes no operands")
        return self

    @classmethod
    def object_of(cls, identifier: ObjectIdentifier) -> TypeSignature:
        return cls(kind=TypeKind.OBJECT, object_type=identifier)

    @classmethod
    def array_of(cls, element: TypeSignature, dimensions: int = 1) -> TypeSignature:
        if element.kind is TypeKind.ARRAY:
            return cls(
                kind=TypeKind.ARRAY,
                element=element.element,
                dimensions=element.dimensions + dimensions,
            )
        return cls(kind=TypeKind.ARRAY, element=element, dimensions=dimensions)

    @property
    def is_primitive(self) -> bool:
        return self.kind not in (TypeKind.VOID, TypeKind.OBJECT, TypeKind.ARRAY)

    @property
    def is_reference(self) -> bool:
        return self.kind in (TypeKind.OBJECT, TypeKind.ARRAY)

    @property
    def is_wide(self) -> bool:
        """True for ``long`` and ``double``, which occupy a register pair."""
        return self.kind in (TypeKind.LONG, TypeKind.DOUBLE)

    def to_jni(self) -> str:
        if self.kind is TypeKind.OBJECT:
            return self.object_type.as_jni_type()
        if self.kind is TypeKind.ARRAY:
            return "[" * self.dimensions + self.element.to_jni()
        return self.kind.value

    def as_java_type(self) -> str:
        if self.kind is TypeKind.OBJECT:
            return self.object_type.as_java_type()
        if self.kind is TypeKind.ARRAY:
            return self.element.as_java_type() + "[]" * self.dimensions
        return _JAVA_PRIMITIVE_NAMES[self.kind]

    @classmethod
    def decode_prefix(cls, text: str, pos: int = 0) -> tuple[TypeSignature, int]:
        """Decode exactly one type starting at ``pos``.

        Returns the type and the index just past it; used wherever several
        descriptors are packed together (method descriptors, member references).
        """
        start = pos
        while pos < len(text) and text[pos] == "[":
            pos += 1
        dimensions = pos - start
        if pos >= len(text):
            raise _bad_descriptor(f"truncated type descriptor {text[start:]!r}")

        lead = text[pos]
        if lead == "L":
            end = text.find(";", pos)
            if end == -1:
                raise _bad_descriptor(f"unterminated class descriptor {text[pos:]!r}")
            element = cls.object_of(ObjectIdentifier.from_jni_type(text[pos : end + 1]))
            pos = end + 1
        elif lead in _PRIMITIVES:
            element = _PRIMITIVES[lead]
            pos += 1
        else:
            raise _bad_descriptor(f"unexpected {lead!r} in type descriptor {text!r}")

        if dimensions:
            if element.kind is TypeKind.VOID:
                raise _bad_descriptor(f"array of void in {text!r}")
            return cls(kind=TypeKind.ARRAY, element=element, dimensions=dimensions), pos
        return element, pos

    @classmethod
    def from_jni(cls, text: str) -> TypeSignature:
        signature, end = cls.decode_prefix(text)
        if end != len(text):
            raise _bad_descriptor(f"trailing characters {text[end:]!r} after type descriptor")
        return signature

    def __str__(self) -> str:
        return self.to_jni()


TypeSignature.model_rebuild()

VOID = TypeSignature(kind=TypeKind.VOID)
BOOL = TypeSignature(kind=TypeKind.BOOL)
BYTE = TypeSignature(kind=TypeKind.BYTE)
CHAR = TypeSignature(kind=TypeKind.CHAR)
SHORT = TypeSignature(kind=TypeKind.SHORT)
INT = TypeSignature(kind=TypeKind.INT)
LONG = TypeSignature(kind=TypeKind.LONG)
FLOAT = TypeSignature(kind=TypeKind.FLOAT)
DOUBLE = TypeSignature(kind=TypeKind.DOUBLE)

_PRIMITIVES = {t.kind.value: t for t in (VOID, BOOL, BYTE, CHAR, SHORT, INT, LONG, FLOAT, DOUBLE)}


# ── Method descriptors ───────────────────────────────────────────────────────


class MethodSignature(BaseModel):
    """Ordered parameter types plus a return type, ``(<params>)<return>`` in JNI form."""

    model_config = ConfigDict(frozen=True)

    parameters: tuple[TypeSignature, ...] = ()
    return_type: TypeSignature = VOID

    @field_validator("parameters")
    @classmethod
    def _no_void_parameters(cls, value: tuple[TypeSignature, ...]) -> tuple[TypeSignature, ...]:
        if any(p.kind is TypeKind.VOID for p in value):
            raise ValueError("void is not a valid parameter type")
        return value

    def to_jni(self) -> str:
        return "(" + "".join(p.to_jni() for p in self.parameters) + ")" + self.return_type.to_jni()

    @classmethod
    def from_jni(cls, text: str) -> MethodSignature:
        if not text.startswith("("):
            raise _bad_descriptor(f"method descriptor {text!r} does not start with '('")
        close = text.find(")")
        if close == -1:
            raise _bad_descriptor(f"unterminated parameter list in {text!r}")

        parameters = []
        pos = 1
        while pos < close:
            param, pos = TypeSignature.decode_prefix(text[:close], pos)
            if param.kind is TypeKind.VOID:
                raise _bad_descriptor(f"void parameter in {text!r}")
            parameters.append(param)

        if close + 1 >= len(text):
            raise _bad_descriptor(f"missing return type in {text!r}")
        return_type = TypeSignature.from_jni(text[close + 1 :])
        return cls(parameters=tuple(parameters), return_type=return_type)

    def register_count(self, is_static: bool = False) -> int:
        """Number of registers the arguments occupy, including ``this`` for instance methods."""
        count = sum(2 if p.is_wide else 1 for p in self.parameters)
        return count if is_static else count + 1

    def __str__(self) -> str:
        return self.to_jni()


# ── Member references ────────────────────────────────────────────────────────


def _split_owner(text: str) -> tuple[TypeSignature, str]:
    owner, pos = TypeSignature.decode_prefix(text)
    if not text.startswith("->", pos):
        raise _bad_descriptor(f"expected '->' after {text[:pos]!r} in {text!r}")
    return owner, text[pos + 2 :]


def _check_member_name(name: str, text: str) -> str:
    if not _MEMBER_NAME.fullmatch(name) and name not in ("<init>", "<clinit>"):
        raise _bad_descriptor(f"malformed member name {name!r} in {text!r}")
    return name


class FieldReference(BaseModel):
    """``Lowner;->name:Type``."""

    model_config = ConfigDict(frozen=True)

    owner: TypeSignature
    name: str
    type: TypeSignature

    @classmethod
    def parse(cls, text: str) -> FieldReference:
        owner, member = _split_owner(text)
        name, colon, descriptor = member.partition(":")
        if not colon:
            raise _bad_descriptor(f"missing ':' in field reference {text!r}")
        return cls(
            owner=owner,
            name=_check_member_name(name, text),
            type=TypeSignature.from_jni(descriptor),
        )

    def to_smali(self) -> str:
        return f"{self.owner.to_jni()}->{self.name}:{self.type.to_jni()}"

    def __str__(self) -> str:
        return self.to_smali()


class MethodReference(BaseModel):
    """``Lowner;->name(Params)Return``; the owner may be an array type."""

    model_config = ConfigDict(frozen=True)

    owner: TypeSignature
    name: str
    signature: MethodSignature

    @classmethod
    def parse(cls, text: str) -> MethodReference:
        owner, member = _split_owner(text)
        paren = member.find("(")
        if paren == -1:
            raise _bad_descriptor(f"missing '(' in method reference {text!r}")
        return cls(
            owner=owner,
            name=_check_member_name(member[:paren], text),
            signature=MethodSignature.from_jni(member[paren:]),
        )

    def to_smali(self) -> str:
        return f"{self.owner.to_jni()}->{self.name}{self.signature.to_jni()}"

    def __str__(self) -> str:
        return self.to_smali()

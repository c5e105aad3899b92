"""Smali text -> model.

A hand-written, line-oriented recursive-descent parser. Two entry points:
:func:`parse_class` for a whole ``.smali`` file and :func:`parse_fragment`
for a bare run of method-body instructions. Both stop at the first error;
nothing is returned for partially parsed input.
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from typing import Callable, Iterator, NamedTuple

from pydantic import ValidationError

from pysmali import opcodes
from pysmali.errors import (
    SmaliParseError,
    SmaliStructureError,
    SmaliSyntaxError,
    SmaliTrailingInputError,
)
from pysmali.instructions import (
    ArrayData,
    BinaryLiteral,
    Catch,
    ConstLiteral,
    ConstMethodHandle,
    ConstMethodType,
    ConstString,
    DebugMarker,
    FilledNewArray,
    Goto,
    IfTest,
    IfTestZero,
    InstanceFieldOperation,
    Invoke,
    InvokeCustom,
    InvokePolymorphic,
    Label,
    LineNumber,
    LocalEnd,
    LocalRestart,
    LocalStart,
    NoOperands,
    OneRegister,
    PackedSwitchData,
    PayloadReference,
    SmaliInstruction,
    SparseSwitchData,
    StaticFieldOperation,
    SwitchEntry,
    ThreeRegisters,
    TwoRegisters,
    TwoRegistersType,
    TypeOperation,
)
from pysmali.literals import find_closing_quote, parse_int, parse_string
from pysmali.models import (
    AccessFlag,
    Annotation,
    AnnotationValue,
    AnnotationValueType,
    AnnotationVisibility,
    HiddenApiRestriction,
    MethodParameter,
    SmaliClass,
    SmaliField,
    SmaliMethod,
)
from pysmali.signatures import (
    FieldReference,
    MethodReference,
    MethodSignature,
    ObjectIdentifier,
    TypeSignature,
)

_REGISTER = re.compile(r"[vp][0-9]+")
_LABEL = re.compile(r":([\w$\-]+)")
_CATCH = re.compile(r"\.catch\s+(\S+)\s*\{\s*:(\S+)\s*\.\.\s*:(\S+)\s*\}\s*:(\S+)")
_CATCHALL = re.compile(r"\.catchall\s*\{\s*:(\S+)\s*\.\.\s*:(\S+)\s*\}\s*:(\S+)")
_SPARSE_ENTRY = re.compile(r"(\S+)\s*->\s*:(\S+)")

_RESTRICTION_WORDS = {restriction.value for restriction in HiddenApiRestriction}
_HEADER_DIRECTIVES = (".super", ".implements", ".source")
_MEMBER_DIRECTIVES = (".field", ".method", ".annotation", ".class")


# ── Lines ────────────────────────────────────────────────────────────────────


def _strip_comment(raw: str) -> str:
    pos = 0
    while pos < len(raw):
        ch = raw[pos]
        if ch in "\"'":
            end = find_closing_quote(raw, pos)
            if end == -1:
                return raw
            pos = end + 1
            continue
        if ch == "#":
            return raw[:pos]
        pos += 1
    return raw


class _Line(NamedTuple):
    number: int
    text: str

    @property
    def directive(self) -> str:
        """First word of the line: ``.method``, ``const/4``, ``:label``..."""
        return self.text.split(None, 1)[0]

    @property
    def rest(self) -> str:
        parts = self.text.split(None, 1)
        return parts[1] if len(parts) > 1 else ""

    def is_end(self, block: str) -> bool:
        return self.text.split() == [".end", block]


class _LineReader:
    """Cursor over the meaningful (non-blank, comment-stripped) lines of a text."""

    def __init__(self, text: str):
        self._lines = []
        for number, raw in enumerate(text.splitlines(), start=1):
            stripped = _strip_comment(raw).strip()
            if stripped:
                self._lines.append(_Line(number, stripped))
        self._pos = 0
        self.last: _Line | None = None

    def peek(self) -> _Line | None:
        return self._lines[self._pos] if self._pos < len(self._lines) else None

    def next(self) -> _Line | None:
        line = self.peek()
        if line is not None:
            self._pos += 1
            self.last = line
        return line


# ── Errors ───────────────────────────────────────────────────────────────────


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(err["msg"].removeprefix("Value error, ") for err in exc.errors())


@contextmanager
def _located(line: _Line) -> Iterator[None]:
    """Pin errors raised while handling ``line`` to its location."""
    try:
        yield
    except SmaliParseError as e:
        if e.line is not None:
            raise
        raise e.with_location(line.number, line.text) from e
    except ValidationError as e:
        raise SmaliSyntaxError(
            "BAD_OPERAND", _validation_message(e), line=line.number, source_line=line.text
        ) from e


def _structure(code: str, message: str, line: _Line) -> SmaliStructureError:
    return SmaliStructureError(code, message, line=line.number, source_line=line.text)


def _unterminated(opener: _Line, block: str) -> SmaliStructureError:
    return _structure(
        "UNTERMINATED_BLOCK", f"{opener.directive} block has no matching .end {block}", opener
    )


# ── Operands ─────────────────────────────────────────────────────────────────


def _split_operands(text: str) -> list[str]:
    """Split on commas that are not inside quotes, braces or parentheses."""
    operands: list[str] = []
    depth = 0
    start = 0
    pos = 0
    while pos < len(text):
        ch = text[pos]
        if ch in "\"'":
            end = find_closing_quote(text, pos)
            if end == -1:
                raise SmaliSyntaxError("BAD_LITERAL", f"unterminated literal in {text.strip()!r}")
            pos = end + 1
            continue
        if ch in "{(":
            depth += 1
        elif ch in "})":
            depth -= 1
        elif ch == "," and depth == 0:
            operands.append(text[start:pos].strip())
            start = pos + 1
        pos += 1
    last = text[start:].strip()
    if last or operands:
        operands.append(last)
    if any(not op for op in operands):
        raise SmaliSyntaxError("BAD_OPERAND", f"empty operand in {text.strip()!r}")
    return operands


def _arity(opcode: str, operands: list[str], count: int) -> None:
    if len(operands) != count:
        raise SmaliSyntaxError(
            "BAD_OPERAND", f"{opcode} takes {count} operand(s), got {len(operands)}"
        )


def _register(text: str) -> str:
    if not _REGISTER.fullmatch(text):
        raise SmaliSyntaxError("BAD_OPERAND", f"expected a register, got {text!r}")
    return text


def _label(text: str) -> str:
    match = _LABEL.fullmatch(text)
    if match is None:
        raise SmaliSyntaxError("BAD_OPERAND", f"expected a :label, got {text!r}")
    return match[1]


def _register_list(text: str, is_range: bool) -> list[str]:
    if not (text.startswith("{") and text.endswith("}")):
        raise SmaliSyntaxError("BAD_OPERAND", f"expected a register list in braces, got {text!r}")
    inner = text[1:-1].strip()
    if not inner:
        return []
    if is_range and ".." in inner:
        first, _, last = inner.partition("..")
        first, last = _register(first.strip()), _register(last.strip())
        if first[0] != last[0] or int(last[1:]) < int(first[1:]):
            raise SmaliSyntaxError("BAD_OPERAND", f"malformed register range {text!r}")
        return [f"{first[0]}{n}" for n in range(int(first[1:]), int(last[1:]) + 1)]
    return [_register(r.strip()) for r in inner.split(",")]


def _access_flags(words: list[str]) -> set[AccessFlag]:
    flags = set()
    for word in words:
        try:
            flags.add(AccessFlag(word))
        except ValueError:
            raise SmaliSyntaxError("BAD_OPERAND", f"unknown access flag {word!r}") from None
    return flags


def _member_flags(words: list[str]) -> tuple[set[AccessFlag], set[HiddenApiRestriction]]:
    """Access flags of a field or method, split from any hidden-API restriction keywords."""
    restrictions = {HiddenApiRestriction(word) for word in words if word in _RESTRICTION_WORDS}
    flags = _access_flags([word for word in words if word not in _RESTRICTION_WORDS])
    return flags, restrictions


def _parameter_register(signature: MethodSignature, is_static: bool, index: int) -> str:
    """Register holding the ``index``-th declared parameter."""
    if index >= len(signature.parameters):
        raise SmaliSyntaxError(
            "BAD_OPERAND", f"more .parameter lines than the {len(signature.parameters)} declared parameters"
        )
    number = 0 if is_static else 1
    number += sum(2 if p.is_wide else 1 for p in signature.parameters[:index])
    return f"p{number}"


# ── Instructions ─────────────────────────────────────────────────────────────


def _no_operands(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 0)
    return NoOperands(opcode=op)


def _one_register(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 1)
    return OneRegister(opcode=op, register=_register(args[0]))


def _two_registers(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 2)
    return TwoRegisters(opcode=op, destination=_register(args[0]), source=_register(args[1]))


def _three_registers(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 3)
    return ThreeRegisters(
        opcode=op,
        destination=_register(args[0]),
        first=_register(args[1]),
        second=_register(args[2]),
    )


def _const(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 2)
    return ConstLiteral(opcode=op, register=_register(args[0]), value=parse_int(args[1]))


def _const_string(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 2)
    return ConstString(opcode=op, register=_register(args[0]), value=parse_string(args[1]))


def _type(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 2)
    return TypeOperation(
        opcode=op, register=_register(args[0]), type=TypeSignature.from_jni(args[1])
    )


def _two_registers_type(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 3)
    return TwoRegistersType(
        opcode=op,
        destination=_register(args[0]),
        source=_register(args[1]),
        type=TypeSignature.from_jni(args[2]),
    )


def _static_field(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 2)
    return StaticFieldOperation(
        opcode=op, register=_register(args[0]), field=FieldReference.parse(args[1])
    )


def _instance_field(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 3)
    return InstanceFieldOperation(
        opcode=op,
        register=_register(args[0]),
        object_register=_register(args[1]),
        field=FieldReference.parse(args[2]),
    )


def _invoke(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 2)
    return Invoke(
        opcode=op,
        registers=_register_list(args[0], opcodes.is_range(op)),
        method=MethodReference.parse(args[1]),
    )


def _filled_new_array(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 2)
    return FilledNewArray(
        opcode=op,
        registers=_register_list(args[0], opcodes.is_range(op)),
        type=TypeSignature.from_jni(args[1]),
    )


def _invoke_polymorphic(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 3)
    return InvokePolymorphic(
        opcode=op,
        registers=_register_list(args[0], opcodes.is_range(op)),
        method=MethodReference.parse(args[1]),
        prototype=MethodSignature.from_jni(args[2]),
    )


def _invoke_custom(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 2)
    return InvokeCustom(
        opcode=op, registers=_register_list(args[0], opcodes.is_range(op)), call_site=args[1]
    )


def _const_method_handle(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 2)
    return ConstMethodHandle(opcode=op, register=_register(args[0]), method_handle=args[1])


def _const_method_type(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 2)
    return ConstMethodType(
        opcode=op, register=_register(args[0]), prototype=MethodSignature.from_jni(args[1])
    )


def _goto(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 1)
    return Goto(opcode=op, target=_label(args[0]))


def _if_test(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 3)
    return IfTest(
        opcode=op, first=_register(args[0]), second=_register(args[1]), target=_label(args[2])
    )


def _if_test_zero(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 2)
    return IfTestZero(opcode=op, register=_register(args[0]), target=_label(args[1]))


def _payload(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 2)
    return PayloadReference(opcode=op, register=_register(args[0]), target=_label(args[1]))


def _binary_literal(op: str, args: list[str]) -> SmaliInstruction:
    _arity(op, args, 3)
    return BinaryLiteral(
        opcode=op,
        destination=_register(args[0]),
        source=_register(args[1]),
        value=parse_int(args[2]),
    )


_OPERAND_PARSERS: dict[str, Callable[[str, list[str]], SmaliInstruction]] = {
    opcodes.NO_OPERANDS: _no_operands,
    opcodes.ONE_REGISTER: _one_register,
    opcodes.TWO_REGISTERS: _two_registers,
    opcodes.THREE_REGISTERS: _three_registers,
    opcodes.CONST: _const,
    opcodes.CONST_STRING: _const_string,
    opcodes.TYPE: _type,
    opcodes.TWO_REGISTERS_TYPE: _two_registers_type,
    opcodes.STATIC_FIELD: _static_field,
    opcodes.INSTANCE_FIELD: _instance_field,
    opcodes.INVOKE: _invoke,
    opcodes.FILLED_NEW_ARRAY: _filled_new_array,
    opcodes.INVOKE_POLYMORPHIC: _invoke_polymorphic,
    opcodes.INVOKE_CUSTOM: _invoke_custom,
    opcodes.CONST_METHOD_HANDLE: _const_method_handle,
    opcodes.CONST_METHOD_TYPE: _const_method_type,
    opcodes.GOTO: _goto,
    opcodes.IF_TEST: _if_test,
    opcodes.IF_TEST_ZERO: _if_test_zero,
    opcodes.PAYLOAD: _payload,
    opcodes.BINARY_LITERAL: _binary_literal,
}


def _instruction(line: _Line) -> SmaliInstruction:
    mnemonic = line.directive
    shape = opcodes.OPCODE_SHAPES.get(mnemonic)
    if shape is None:
        raise SmaliSyntaxError("UNKNOWN_OPCODE", f"unknown opcode {mnemonic!r}")
    return _OPERAND_PARSERS[shape](mnemonic, _split_operands(line.rest))


# ── Parser ───────────────────────────────────────────────────────────────────


class _Parser:
    def __init__(self, text: str, fragment: bool = False):
        self._reader = _LineReader(text)
        self._fragment = fragment

    # ── Class level ──────────────────────────────────────────────────────────

    def parse_class(self) -> SmaliClass:
        first = self._reader.next()
        if first is None:
            raise SmaliStructureError("MISSING_CLASS", "no .class directive found")
        if first.directive != ".class":
            raise _structure("MISSING_CLASS", "expected .class as the first directive", first)

        with _located(first):
            words = first.rest.split()
            if not words:
                raise SmaliSyntaxError("BAD_OPERAND", ".class needs a class descriptor")
            flags = _access_flags(words[:-1])
            name = ObjectIdentifier.from_jni_type(words[-1])

        super_class = None
        source = None
        interfaces: list[ObjectIdentifier] = []
        annotations: list[Annotation] = []
        fields: list[SmaliField] = []
        methods: list[SmaliMethod] = []
        in_header = True

        while True:
            line = self._reader.next()
            if line is None:
                break
            directive = line.directive
            if directive in _HEADER_DIRECTIVES:
                if not in_header:
                    raise _structure(
                        "UNEXPECTED_DIRECTIVE", f"{directive} must precede the class members", line
                    )
                with _located(line):
                    if directive == ".super":
                        if super_class is not None:
                            raise _structure("DUPLICATE_DIRECTIVE", "duplicate .super", line)
                        super_class = ObjectIdentifier.from_jni_type(line.rest)
                    elif directive == ".source":
                        if source is not None:
                            raise _structure("DUPLICATE_DIRECTIVE", "duplicate .source", line)
                        source = parse_string(line.rest)
                    else:
                        interfaces.append(ObjectIdentifier.from_jni_type(line.rest))
            elif directive == ".annotation":
                in_header = False
                annotations.append(self._annotation(line))
            elif directive == ".field":
                in_header = False
                field, trailing = self._field(line)
                fields.append(field)
                annotations.extend(trailing)
            elif directive == ".method":
                in_header = False
                methods.append(self._method(line))
            elif directive == ".class":
                raise _structure("DUPLICATE_DIRECTIVE", "duplicate .class", line)
            else:
                raise _structure(
                    "UNEXPECTED_DIRECTIVE", f"unexpected {directive!r} at class level", line
                )

        return SmaliClass(
            access_flags=flags,
            name=name,
            super_class=super_class,
            interfaces=interfaces,
            source=source,
            annotations=annotations,
            fields=fields,
            methods=methods,
        )

    def _field(self, opener: _Line) -> tuple[SmaliField, list[Annotation]]:
        """The field, plus any annotations after it that belong to the class instead."""
        with _located(opener):
            head, equals, initial = opener.rest.partition("=")
            words = head.split()
            if not words:
                raise SmaliSyntaxError("BAD_OPERAND", ".field needs name:Type")
            name, colon, descriptor = words[-1].partition(":")
            if not colon or not name:
                raise SmaliSyntaxError("BAD_OPERAND", f"expected name:Type, got {words[-1]!r}")
            initial = initial.strip()
            if equals and not initial:
                raise SmaliSyntaxError("BAD_LITERAL", "missing initial value after '='")
            flags, restrictions = _member_flags(words[:-1])
            field_type = TypeSignature.from_jni(descriptor)

        annotations, closed = self._member_annotations("field")
        with _located(opener):
            field = SmaliField(
                name=name,
                type=field_type,
                access_flags=flags,
                hidden_api=restrictions,
                initial_value=initial if equals else None,
                annotations=annotations if closed else [],
            )
        return field, [] if closed else annotations

    def _member_annotations(self, block: str) -> tuple[list[Annotation], bool]:
        """Collect the ``.annotation`` blocks after a field or parameter.

        The flag tells whether ``.end <block>`` closed them. Only then are they the
        member's own; otherwise they belong to the enclosing class or method.
        """
        annotations = []
        while True:
            following = self._reader.peek()
            if following is not None and following.is_end(block):
                self._reader.next()
                return annotations, True
            if following is None or following.directive != ".annotation":
                return annotations, False
            annotations.append(self._annotation(self._reader.next()))

    # ── Methods ──────────────────────────────────────────────────────────────

    def _method(self, opener: _Line) -> SmaliMethod:
        with _located(opener):
            words = opener.rest.split()
            if not words:
                raise SmaliSyntaxError("BAD_OPERAND", ".method needs name(Params)Return")
            name, paren, descriptor = words[-1].partition("(")
            if not paren or not name:
                raise SmaliSyntaxError(
                    "BAD_OPERAND", f"expected name(Params)Return, got {words[-1]!r}"
                )
            flags, restrictions = _member_flags(words[:-1])
            signature = MethodSignature.from_jni("(" + descriptor)

        registers = None
        local_count = None
        parameters: list[MethodParameter] = []
        annotations: list[Annotation] = []
        body: list[SmaliInstruction] = []

        while True:
            line = self._reader.next()
            if line is None:
                raise _unterminated(opener, "method")
            if line.is_end("method"):
                break
            directive = line.directive
            if directive in (".registers", ".locals"):
                if registers is not None or local_count is not None:
                    raise _structure(
                        "DUPLICATE_DIRECTIVE", "register count declared more than once", line
                    )
                with _located(line):
                    count = parse_int(line.rest)
                if directive == ".registers":
                    registers = count
                else:
                    local_count = count
            elif directive in (".param", ".parameter"):
                parameter, trailing = self._param(
                    line, signature, AccessFlag.STATIC in flags, len(parameters)
                )
                parameters.append(parameter)
                annotations.extend(trailing)
            elif directive == ".annotation":
                annotations.append(self._annotation(line))
            elif directive in _MEMBER_DIRECTIVES or directive in _HEADER_DIRECTIVES:
                raise _structure(
                    "UNEXPECTED_DIRECTIVE",
                    f"{directive} inside method {name!r} (missing .end method?)",
                    line,
                )
            else:
                body.append(self._body_item(line))

        with _located(opener):
            return SmaliMethod(
                name=name,
                signature=signature,
                access_flags=flags,
                hidden_api=restrictions,
                registers=registers,
                locals=local_count,
                parameters=parameters,
                annotations=annotations,
                instructions=body,
            )

    def _param(
        self, opener: _Line, signature: MethodSignature, is_static: bool, index: int
    ) -> tuple[MethodParameter, list[Annotation]]:
        """The parameter, plus any annotations after it that belong to the method instead.

        Old ``.parameter ["name"]`` lines carry no register and name the parameters in
        declaration order.
        """
        with _located(opener):
            operands = _split_operands(opener.rest)
            if operands and not operands[0].startswith('"'):
                register = _register(operands.pop(0))
            elif opener.directive == ".parameter":
                register = _parameter_register(signature, is_static, index)
            else:
                raise SmaliSyntaxError("BAD_OPERAND", ".param takes a register and a name")
            if len(operands) > 1:
                raise SmaliSyntaxError("BAD_OPERAND", f"{opener.directive} takes a register and a name")
            name = parse_string(operands[0]) if operands else None

        annotations, closed = self._member_annotations(opener.directive[1:])
        with _located(opener):
            parameter = MethodParameter(
                register=register, name=name, annotations=annotations if closed else []
            )
        return parameter, [] if closed else annotations

    # ── Body items ───────────────────────────────────────────────────────────

    def body_items(self) -> list[SmaliInstruction]:
        items = []
        while True:
            line = self._reader.next()
            if line is None:
                return items
            items.append(self._body_item(line))

    def _body_item(self, line: _Line) -> SmaliInstruction:
        with _located(line):
            if line.text.startswith(":"):
                return Label(name=_label(line.text))
            if not line.text.startswith("."):
                return _instruction(line)
            handler = self._DIRECTIVES.get(line.directive)
            if handler is None:
                if self._fragment:
                    raise SmaliTrailingInputError(
                        "TRAILING_INPUT", f"{line.directive} cannot appear in an instruction fragment"
                    )
                raise SmaliStructureError(
                    "UNEXPECTED_DIRECTIVE", f"unexpected {line.directive} in method body"
                )
            return handler(self, line)

    def _line_number(self, line: _Line) -> SmaliInstruction:
        return LineNumber(line=parse_int(line.rest))

    def _catch(self, line: _Line) -> SmaliInstruction:
        if line.directive == ".catchall":
            match = _CATCHALL.fullmatch(line.text)
            if match is None:
                raise SmaliSyntaxError("BAD_OPERAND", "expected .catchall {:start .. :end} :handler")
            return Catch(start=match[1], end=match[2], handler=match[3])
        match = _CATCH.fullmatch(line.text)
        if match is None:
            raise SmaliSyntaxError("BAD_OPERAND", "expected .catch Ltype; {:start .. :end} :handler")
        return Catch(
            exception=ObjectIdentifier.from_jni_type(match[1]),
            start=match[2],
            end=match[3],
            handler=match[4],
        )

    def _local(self, line: _Line) -> SmaliInstruction:
        operands = _split_operands(line.rest)
        if not 1 <= len(operands) <= 3:
            raise SmaliSyntaxError("BAD_OPERAND", '.local takes vN[, "name":Type[, "signature"]]')
        register = _register(operands[0])
        if len(operands) == 1:
            return LocalStart(register=register)

        info = operands[1]
        if info.startswith('"'):
            close = find_closing_quote(info, 0)
            name = parse_string(info[: close + 1])
            rest = info[close + 1 :]
        elif info.startswith("null"):
            name = None
            rest = info[len("null") :]
        else:
            raise SmaliSyntaxError("BAD_OPERAND", f"expected a local name, got {info!r}")
        if not rest.startswith(":"):
            raise SmaliSyntaxError("BAD_OPERAND", f"expected ':' and a type after the local name in {info!r}")
        local_type = TypeSignature.from_jni(rest[1:].strip())

        signature = None
        if len(operands) == 3 and operands[2] != "null":
            signature = parse_string(operands[2])
        return LocalStart(register=register, name=name, type=local_type, signature=signature)

    def _end_directive(self, line: _Line) -> SmaliInstruction:
        words = line.rest.split()
        if len(words) == 2 and words[0] == "local":
            return LocalEnd(register=_register(words[1]))
        if self._fragment:
            raise SmaliTrailingInputError(
                "TRAILING_INPUT", f"{line.text} cannot appear in an instruction fragment"
            )
        raise SmaliStructureError("UNEXPECTED_DIRECTIVE", f"unexpected {line.text}")

    def _restart(self, line: _Line) -> SmaliInstruction:
        words = line.rest.split()
        if len(words) != 2 or words[0] != "local":
            raise SmaliSyntaxError("BAD_OPERAND", "expected .restart local vN")
        return LocalRestart(register=_register(words[1]))

    def _debug_marker(self, line: _Line) -> SmaliInstruction:
        if line.rest:
            raise SmaliSyntaxError("BAD_OPERAND", f"{line.directive} takes no operands")
        return DebugMarker(directive=line.directive[1:])

    def _payload_lines(self, opener: _Line, block: str) -> Iterator[_Line]:
        while True:
            line = self._reader.next()
            if line is None:
                raise _unterminated(opener, block)
            if line.is_end(block):
                return
            yield line

    def _array_data(self, opener: _Line) -> SmaliInstruction:
        width = parse_int(opener.rest)
        values = []
        for line in self._payload_lines(opener, "array-data"):
            with _located(line):
                values.extend(parse_int(word) for word in line.text.replace(",", " ").split())
        return ArrayData(element_width=width, values=values)

    def _packed_switch(self, opener: _Line) -> SmaliInstruction:
        first_key = parse_int(opener.rest)
        targets = []
        for line in self._payload_lines(opener, "packed-switch"):
            with _located(line):
                targets.append(_label(line.text))
        return PackedSwitchData(first_key=first_key, targets=targets)

    def _sparse_switch(self, opener: _Line) -> SmaliInstruction:
        if opener.rest:
            raise SmaliSyntaxError("BAD_OPERAND", ".sparse-switch takes no operands")
        entries = []
        for line in self._payload_lines(opener, "sparse-switch"):
            with _located(line):
                match = _SPARSE_ENTRY.fullmatch(line.text)
                if match is None:
                    raise SmaliSyntaxError("BAD_OPERAND", "expected key -> :label")
                entries.append(SwitchEntry(key=parse_int(match[1]), target=match[2]))
        return SparseSwitchData(entries=entries)

    _DIRECTIVES: dict[str, Callable[[_Parser, _Line], SmaliInstruction]] = {
        ".line": _line_number,
        ".catch": _catch,
        ".catchall": _catch,
        ".local": _local,
        ".end": _end_directive,
        ".restart": _restart,
        ".prologue": _debug_marker,
        ".epilogue": _debug_marker,
        ".array-data": _array_data,
        ".packed-switch": _packed_switch,
        ".sparse-switch": _sparse_switch,
    }

    # ── Annotations ──────────────────────────────────────────────────────────

    def _annotation(self, opener: _Line) -> Annotation:
        with _located(opener):
            words = opener.rest.split()
            if len(words) != 2:
                raise SmaliSyntaxError("BAD_OPERAND", ".annotation takes a visibility and a type")
            try:
                visibility = AnnotationVisibility(words[0])
            except ValueError:
                raise SmaliSyntaxError(
                    "BAD_OPERAND", f"unknown annotation visibility {words[0]!r}"
                ) from None
            annotation_class = ObjectIdentifier.from_jni_type(words[1])

        values, trailing = self._annotation_elements(opener, "annotation")
        if trailing:
            raise SmaliSyntaxError(
                "BAD_OPERAND",
                f"unexpected {trailing!r} after .end annotation",
                line=self._reader.last.number,
                source_line=self._reader.last.text,
            )
        with _located(opener):
            return Annotation(annotation_class=annotation_class, visibility=visibility, values=values)

    def _annotation_elements(
        self, opener: _Line, block: str
    ) -> tuple[dict[str, AnnotationValue], str]:
        """Read ``name = value`` lines up to ``.end <block>``.

        Returns the elements and whatever follows the ``.end`` on its line (a
        sub-annotation inside an array may be followed by ``,`` or ``}``).
        """
        terminator = f".end {block}"
        values: dict[str, AnnotationValue] = {}
        while True:
            line = self._reader.next()
            if line is None:
                raise _unterminated(opener, block)
            if line.text.startswith(terminator):
                return values, line.text[len(terminator) :].strip()
            if line.directive.startswith("."):
                raise _structure(
                    "UNEXPECTED_DIRECTIVE",
                    f"unexpected {line.directive} in {opener.directive} block (missing {terminator}?)",
                    line,
                )
            with _located(line):
                name, equals, rest = line.text.partition("=")
                name = name.strip()
                if not equals or not name:
                    raise SmaliSyntaxError("BAD_OPERAND", "expected 'name = value'")
                value, trailing = self._annotation_value(rest.strip(), line)
                if trailing:
                    raise SmaliSyntaxError("BAD_OPERAND", f"unexpected {trailing!r} after value")
                values[name] = value

    def _annotation_value(self, text: str, line: _Line) -> tuple[AnnotationValue, str]:
        """Parse the value at the start of ``text``; returns it with the unconsumed rest."""
        if not text:
            raise SmaliSyntaxError("BAD_OPERAND", "missing annotation value")
        if text.startswith("{"):
            return self._annotation_array(text[1:].strip(), line)
        if text.startswith(".subannotation"):
            annotation_class = ObjectIdentifier.from_jni_type(text[len(".subannotation") :].strip())
            values, trailing = self._annotation_elements(line, "subannotation")
            sub = Annotation(annotation_class=annotation_class, values=values)
            return AnnotationValue(type=AnnotationValueType.SUBANNOTATION, annotation=sub), trailing
        if text.startswith(".enum"):
            literal, rest = _scan_literal(text[len(".enum") :].strip())
            field = FieldReference.parse(literal)
            return AnnotationValue(type=AnnotationValueType.ENUM, field=field), rest
        literal, rest = _scan_literal(text)
        return AnnotationValue(type=AnnotationValueType.LITERAL, value=literal), rest

    def _annotation_array(self, text: str, line: _Line) -> tuple[AnnotationValue, str]:
        items: list[AnnotationValue] = []
        while True:
            if not text:
                line = self._reader.next()
                if line is None:
                    raise SmaliStructureError("UNTERMINATED_BLOCK", "annotation array is not closed")
                text = line.text
                continue
            if text.startswith("}"):
                return AnnotationValue(type=AnnotationValueType.ARRAY, values=items), text[1:].strip()
            with _located(self._reader.last or line):
                value, text = self._annotation_value(text, line)
                items.append(value)
                text = text.strip()
                if text.startswith(","):
                    text = text[1:].strip()
                elif text and not text.startswith("}"):
                    raise SmaliSyntaxError("BAD_OPERAND", f"expected ',' or '}}' before {text!r}")


def _scan_literal(text: str) -> tuple[str, str]:
    """Split a raw annotation literal off the front of ``text``."""
    if text[:1] in ("\"", "'"):
        end = find_closing_quote(text, 0)
        if end == -1:
            raise SmaliSyntaxError("BAD_LITERAL", f"unterminated literal {text!r}")
        return text[: end + 1], text[end + 1 :]
    pos = 0
    while pos < len(text) and text[pos] not in ",}":
        pos += 1
    literal = text[:pos].strip()
    if not literal:
        raise SmaliSyntaxError("BAD_LITERAL", "empty annotation value")
    return literal, text[pos:]


# ── Entry points ─────────────────────────────────────────────────────────────


def parse_class(text: str) -> SmaliClass:
    """Parse a complete ``.smali`` class."""
    return _Parser(text).parse_class()


def parse_fragment(text: str) -> list[SmaliInstruction]:
    """Parse a bare run of method-body instructions.

    The whole input must be consumed; blank or comment-only input gives ``[]``.
    """
    return _Parser(text, fragment=True).body_items()


parse_instruction_fragment = parse_fragment

"""Model -> smali text, in the layout baksmali produces."""

from __future__ import annotations

from typing import Callable

from pysmali.instructions import (
    DALVIK_INSTRUCTION_TYPES,
    INSTRUCTION_TYPES,
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
    ThreeRegisters,
    TwoRegisters,
    TwoRegistersType,
    TypeOperation,
)
from pysmali.literals import WIDTH_SUFFIXES, format_int, format_string
from pysmali.models import (
    AccessFlag,
    Annotation,
    AnnotationValue,
    AnnotationValueType,
    HiddenApiRestriction,
    MethodParameter,
    SmaliClass,
    SmaliField,
    SmaliMethod,
    SmaliSettings,
    ordered_flags,
)

_PAYLOAD_TYPES = (ArrayData, PackedSwitchData, SparseSwitchData)


def _flags(flags: set[AccessFlag], hidden_api: set[HiddenApiRestriction] = frozenset()) -> str:
    words = [flag.value for flag in ordered_flags(flags)]
    words += [restriction.value for restriction in HiddenApiRestriction if restriction in hidden_api]
    return "".join(f"{word} " for word in words)


def _register_list(item: Invoke | FilledNewArray | InvokePolymorphic | InvokeCustom) -> str:
    if item.is_range and item.registers:
        return f"{{{item.registers[0]} .. {item.registers[-1]}}}"
    return "{" + ", ".join(item.registers) + "}"


# ── Instructions ─────────────────────────────────────────────────────────────
#
# Each renderer returns the item's lines without the outer indent; payload
# tables indent their entries by one extra ``indent``.


def _no_operands(item: NoOperands, indent: str) -> list[str]:
    return [item.opcode]


def _one_register(item: OneRegister, indent: str) -> list[str]:
    return [f"{item.opcode} {item.reg}"]


def _two_registers(item: TwoRegisters, indent: str) -> list[str]:
    return [f"{item.opcode} {item.destination}, {item.source}"]


def _three_registers(item: ThreeRegisters, indent: str) -> list[str]:
    return [f"{item.opcode} {item.destination}, {item.first}, {item.second}"]


def _const(item: ConstLiteral, indent: str) -> list[str]:
    suffix = "L" if item.is_wide else ""
    return [f"{item.opcode} {item.reg}, {format_int(item.value, suffix)}"]


def _const_string(item: ConstString, indent: str) -> list[str]:
    return [f"{item.opcode} {item.reg}, {format_string(item.value)}"]


def _type(item: TypeOperation, indent: str) -> list[str]:
    return [f"{item.opcode} {item.reg}, {item.type.to_jni()}"]


def _two_registers_type(item: TwoRegistersType, indent: str) -> list[str]:
    return [f"{item.opcode} {item.destination}, {item.source}, {item.type.to_jni()}"]


def _static_field(item: StaticFieldOperation, indent: str) -> list[str]:
    return [f"{item.opcode} {item.reg}, {item.field.to_smali()}"]


def _instance_field(item: InstanceFieldOperation, indent: str) -> list[str]:
    return [f"{item.opcode} {item.reg}, {item.object_register}, {item.field.to_smali()}"]


def _invoke(item: Invoke, indent: str) -> list[str]:
    return [f"{item.opcode} {_register_list(item)}, {item.method.to_smali()}"]


def _filled_new_array(item: FilledNewArray, indent: str) -> list[str]:
    return [f"{item.opcode} {_register_list(item)}, {item.type.to_jni()}"]


def _invoke_polymorphic(item: InvokePolymorphic, indent: str) -> list[str]:
    return [
        f"{item.opcode} {_register_list(item)}, {item.method.to_smali()}, {item.prototype.to_jni()}"
    ]


def _invoke_custom(item: InvokeCustom, indent: str) -> list[str]:
    return [f"{item.opcode} {_register_list(item)}, {item.call_site}"]


def _const_method_handle(item: ConstMethodHandle, indent: str) -> list[str]:
    return [f"{item.opcode} {item.reg}, {item.method_handle}"]


def _const_method_type(item: ConstMethodType, indent: str) -> list[str]:
    return [f"{item.opcode} {item.reg}, {item.prototype.to_jni()}"]


def _goto(item: Goto, indent: str) -> list[str]:
    return [f"{item.opcode} :{item.target}"]


def _if_test(item: IfTest, indent: str) -> list[str]:
    return [f"{item.opcode} {item.first}, {item.second}, :{item.target}"]


def _if_test_zero(item: IfTestZero, indent: str) -> list[str]:
    return [f"{item.opcode} {item.reg}, :{item.target}"]


def _payload(item: PayloadReference, indent: str) -> list[str]:
    return [f"{item.opcode} {item.reg}, :{item.target}"]


def _binary_literal(item: BinaryLiteral, indent: str) -> list[str]:
    return [f"{item.opcode} {item.destination}, {item.source}, {format_int(item.value)}"]


def _label(item: Label, indent: str) -> list[str]:
    return [f":{item.name}"]


def _line_number(item: LineNumber, indent: str) -> list[str]:
    return [f".line {item.line}"]


def _catch(item: Catch, indent: str) -> list[str]:
    span = f"{{:{item.start} .. :{item.end}}} :{item.handler}"
    if item.exception is None:
        return [f".catchall {span}"]
    return [f".catch {item.exception.as_jni_type()} {span}"]


def _local(item: LocalStart, indent: str) -> list[str]:
    if item.type is None:
        return [f".local {item.reg}"]
    name = "null" if item.name is None else format_string(item.name)
    text = f".local {item.reg}, {name}:{item.type.to_jni()}"
    if item.signature is not None:
        text += f", {format_string(item.signature)}"
    return [text]


def _end_local(item: LocalEnd, indent: str) -> list[str]:
    return [f".end local {item.reg}"]


def _restart_local(item: LocalRestart, indent: str) -> list[str]:
    return [f".restart local {item.reg}"]


def _debug_marker(item: DebugMarker, indent: str) -> list[str]:
    return [f".{item.directive}"]


def _array_data(item: ArrayData, indent: str) -> list[str]:
    suffix = WIDTH_SUFFIXES[item.element_width]
    lines = [f".array-data {item.element_width}"]
    lines += [indent + format_int(value, suffix) for value in item.values]
    lines.append(".end array-data")
    return lines


def _packed_switch(item: PackedSwitchData, indent: str) -> list[str]:
    lines = [f".packed-switch {format_int(item.first_key)}"]
    lines += [f"{indent}:{target}" for target in item.targets]
    lines.append(".end packed-switch")
    return lines


def _sparse_switch(item: SparseSwitchData, indent: str) -> list[str]:
    lines = [".sparse-switch"]
    lines += [f"{indent}{format_int(e.key)} -> :{e.target}" for e in item.entries]
    lines.append(".end sparse-switch")
    return lines


_RENDERERS: dict[type, Callable[..., list[str]]] = {
    NoOperands: _no_operands,
    OneRegister: _one_register,
    TwoRegisters: _two_registers,
    ThreeRegisters: _three_registers,
    ConstLiteral: _const,
    ConstString: _const_string,
    TypeOperation: _type,
    TwoRegistersType: _two_registers_type,
    StaticFieldOperation: _static_field,
    InstanceFieldOperation: _instance_field,
    Invoke: _invoke,
    FilledNewArray: _filled_new_array,
    InvokePolymorphic: _invoke_polymorphic,
    InvokeCustom: _invoke_custom,
    ConstMethodHandle: _const_method_handle,
    ConstMethodType: _const_method_type,
    Goto: _goto,
    IfTest: _if_test,
    IfTestZero: _if_test_zero,
    PayloadReference: _payload,
    BinaryLiteral: _binary_literal,
    Label: _label,
    LineNumber: _line_number,
    Catch: _catch,
    LocalStart: _local,
    LocalEnd: _end_local,
    LocalRestart: _restart_local,
    DebugMarker: _debug_marker,
    ArrayData: _array_data,
    PackedSwitchData: _packed_switch,
    SparseSwitchData: _sparse_switch,
}

_unhandled = [t.__name__ for t in INSTRUCTION_TYPES if t not in _RENDERERS]
if _unhandled:
    raise TypeError(f"no smali renderer for {', '.join(_unhandled)}")


def _item_lines(item: SmaliInstruction, indent: str) -> list[str]:
    renderer = _RENDERERS.get(type(item))
    if renderer is None:
        raise TypeError(f"cannot render {type(item).__name__} as smali")
    return renderer(item, indent)


def _body_lines(items: list[SmaliInstruction], indent: str) -> list[str]:
    """Body items at ``indent``, with a blank line after every instruction and payload."""
    lines: list[str] = []
    previous = None
    for item in items:
        if isinstance(previous, DALVIK_INSTRUCTION_TYPES + _PAYLOAD_TYPES):
            lines.append("")
        lines += [indent + text for text in _item_lines(item, indent)]
        previous = item
    return lines


def render_instruction(item: SmaliInstruction) -> str:
    """Render a single body item; payload tables span several lines."""
    return "\n".join(_item_lines(item, SmaliSettings().indent))


def render_instructions(
    items: list[SmaliInstruction], settings: SmaliSettings | None = None
) -> str:
    """Render body items as an indented fragment that :func:`parse_fragment` reads back."""
    settings = settings or SmaliSettings()
    if not items:
        return ""
    return "\n".join(_body_lines(items, settings.indent)) + "\n"


# ── Annotations ──────────────────────────────────────────────────────────────


def _annotation_value(value: AnnotationValue, indent: str, level: str) -> list[str]:
    """Lines of ``value``; the first line continues whatever precedes it."""
    if value.type == AnnotationValueType.LITERAL:
        return [value.value]
    if value.type == AnnotationValueType.ENUM:
        return [f".enum {value.field.to_smali()}"]
    if value.type == AnnotationValueType.SUBANNOTATION:
        sub = value.annotation
        lines = [f".subannotation {sub.annotation_class.as_jni_type()}"]
        lines += _annotation_elements(sub, indent, level + indent)
        lines.append(f"{level}.end subannotation")
        return lines

    if not value.values:
        return ["{}"]
    inner = level + indent
    lines = ["{"]
    for i, element in enumerate(value.values):
        element_lines = _annotation_value(element, indent, inner)
        element_lines[0] = inner + element_lines[0]
        if i < len(value.values) - 1:
            element_lines[-1] += ","
        lines += element_lines
    lines.append(f"{level}}}")
    return lines


def _annotation_elements(annotation: Annotation, indent: str, level: str) -> list[str]:
    lines: list[str] = []
    for name, value in annotation.values.items():
        value_lines = _annotation_value(value, indent, level)
        value_lines[0] = f"{level}{name} = {value_lines[0]}"
        lines += value_lines
    return lines


def _annotation(annotation: Annotation, indent: str, level: str = "") -> list[str]:
    if annotation.visibility is None:
        raise ValueError(
            f"annotation {annotation.annotation_class} needs a visibility outside a sub-annotation"
        )
    lines = [
        f"{level}.annotation {annotation.visibility.value} "
        f"{annotation.annotation_class.as_jni_type()}"
    ]
    lines += _annotation_elements(annotation, indent, level + indent)
    lines.append(f"{level}.end annotation")
    return lines


def _annotation_block(annotations: list[Annotation], indent: str, level: str) -> list[str]:
    """Annotations separated by blank lines."""
    lines: list[str] = []
    for i, annotation in enumerate(annotations):
        if i:
            lines.append("")
        lines += _annotation(annotation, indent, level)
    return lines


# ── Members ──────────────────────────────────────────────────────────────────


def _field(field: SmaliField, indent: str) -> list[str]:
    header = f".field {_flags(field.access_flags, field.hidden_api)}{field.name}:{field.type.to_jni()}"
    if field.initial_value is not None:
        header += f" = {field.initial_value}"
    if not field.annotations:
        return [header]
    return [header, *_annotation_block(field.annotations, indent, indent), ".end field"]


def _param(param: MethodParameter, indent: str) -> list[str]:
    header = f"{indent}.param {param.reg}"
    if param.name is not None:
        header += f", {format_string(param.name)}"
    if not param.annotations:
        return [header]
    lines = [header]
    lines += _annotation_block(param.annotations, indent, indent * 2)
    lines.append(f"{indent}.end param")
    return lines


def _method(method: SmaliMethod, indent: str) -> list[str]:
    lines = [f".method {_flags(method.access_flags, method.hidden_api)}{method.descriptor}"]
    if method.registers is not None:
        lines.append(f"{indent}.registers {method.registers}")
    elif method.locals is not None:
        lines.append(f"{indent}.locals {method.locals}")
    for param in method.parameters:
        lines += _param(param, indent)
    if method.annotations:
        lines += _annotation_block(method.annotations, indent, indent)
    if method.instructions:
        lines.append("")
        lines += _body_lines(method.instructions, indent)
    lines.append(".end method")
    return lines


def _section(title: str, blocks: list[list[str]]) -> list[str]:
    lines = ["", "", f"# {title}"]
    for i, block in enumerate(blocks):
        if i:
            lines.append("")
        lines += block
    return lines


def render_class(cls: SmaliClass, settings: SmaliSettings | None = None) -> str:
    """Render a whole class in baksmali's layout."""
    settings = settings or SmaliSettings()
    indent = settings.indent

    lines = [f".class {_flags(cls.access_flags)}{cls.name.as_jni_type()}"]
    if cls.super_class is not None:
        lines.append(f".super {cls.super_class.as_jni_type()}")
    if cls.source is not None:
        lines.append(f".source {format_string(cls.source)}")

    if cls.interfaces:
        lines += _section("interfaces", [[f".implements {i.as_jni_type()}" for i in cls.interfaces]])
    if cls.annotations:
        lines += _section("annotations", [_annotation_block(cls.annotations, indent, "")])
    if cls.fields:
        lines += _section("fields", [_field(f, indent) for f in cls.fields])
    if cls.methods:
        lines += _section("methods", [_method(m, indent) for m in cls.methods])
    return "\n".join(lines) + "\n"

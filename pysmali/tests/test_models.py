from __future__ import annotations

import pytest
from pydantic import BaseModel, ValidationError

from pysmali import (
    AccessFlag,
    AnnotationValue,
    AnnotationValueType,
    MethodParameter,
    MethodSignature,
    SmaliClass,
    SmaliField,
    SmaliMethod,
)
from pysmali.instructions import (
    INSTRUCTION_TYPES,
    ArrayData,
    ConstLiteral,
    Invoke,
    LocalEnd,
    LocalStart,
    NoOperands,
    OneRegister,
    PackedSwitchData,
)
from pysmali.models import LocalVariableRange, access_mask, ordered_flags
from pysmali.signatures import INT, MethodReference


def test_access_mask():
    assert access_mask({AccessFlag.PUBLIC, AccessFlag.FINAL}) == 0x11
    assert access_mask({AccessFlag.CONSTRUCTOR, AccessFlag.STATIC}) == 0x10008
    assert access_mask(set()) == 0


def test_ordered_flags():
    flags = {AccessFlag.ABSTRACT, AccessFlag.PUBLIC, AccessFlag.INTERFACE}
    assert ordered_flags(flags) == [AccessFlag.PUBLIC, AccessFlag.INTERFACE, AccessFlag.ABSTRACT]


def test_register_count(sample_class):
    classify = sample_class.find_method("classify")
    assert classify.register_count == 4
    lookup = sample_class.find_method("lookup")
    assert lookup.is_static
    assert lookup.register_count == 8
    assert sample_class.find_method("<init>").register_count == 3
    assert sample_class.find_method("nativeHash").register_count is None


def test_method_properties(sample_class):
    init = sample_class.find_method("<init>")
    assert init.is_constructor
    assert init.descriptor == "<init>(Ljava/lang/String;)V"
    assert not sample_class.find_method("run").is_constructor


def test_labels(sample_class):
    method = sample_class.find_method("classify")
    labels = method.labels
    assert set(labels) == {"goto_0", "pswitch_0", "pswitch_1", "pswitch_data_0"}
    assert isinstance(method.instructions[labels["pswitch_data_0"] + 1], PackedSwitchData)


def test_try_catches(sample_class):
    ranges = sample_class.find_method("run").try_catches
    assert [(t.start, t.end, t.handler) for t in ranges] == [
        ("try_start_0", "try_end_0", "catch_0"),
        ("try_start_0", "try_end_0", "catchall_0"),
    ]
    assert ranges[0].exception.simple_name == "InterruptedException"
    assert ranges[1].exception is None


def test_local_variables(sample_class):
    method = sample_class.find_method("run")
    (local,) = method.local_variables
    assert local.name == "e"
    assert isinstance(method.instructions[local.start], LocalStart)
    assert local.end - local.start == 2


def test_restarted_local_keeps_its_debug_info():
    method = SmaliMethod(
        name="f",
        signature=MethodSignature(),
        instructions=[
            LocalStart(register="v0", name="i", type=INT),
            {"kind": "end-local", "register": "v0"},
            {"kind": "restart-local", "register": "v0"},
            NoOperands(opcode="return-void"),
        ],
    )
    first, second = method.local_variables
    assert (first.start, first.end) == (0, 1)
    assert (second.start, second.end) == (2, None)
    assert second.name == "i"


def test_find_methods(sample_class):
    assert len(sample_class.find_methods("classify")) == 1
    assert sample_class.find_method("classify", "(J)Ljava/lang/String;") is None
    assert sample_class.find_method("missing") is None
    assert sample_class.find_field("TAG").initial_value == '"Sample"'
    assert sample_class.find_field("missing") is None


def test_instructions_accept_plain_dicts():
    method = SmaliMethod.model_validate(
        {
            "name": "f",
            "signature": {"parameters": [], "return_type": {"kind": "V"}},
            "instructions": [{"kind": "no-operands", "opcode": "return-void"}],
        }
    )
    assert method.instructions == [NoOperands(opcode="return-void")]


def test_model_json_round_trip(sample_class):
    assert SmaliClass.model_validate_json(sample_class.model_dump_json()) == sample_class


# ── Validation ───────────────────────────────────────────────────────────────


def test_opcode_must_match_shape():
    with pytest.raises(ValidationError):
        NoOperands(opcode="move")
    with pytest.raises(ValidationError):
        NoOperands(opcode="not-an-opcode")


def test_non_range_invoke_takes_five_registers():
    ref = MethodReference.parse("La;->f(IIIII)V")
    Invoke(opcode="invoke-static", registers=["v0", "v1", "v2", "v3", "v4"], method=ref)
    with pytest.raises(ValidationError):
        Invoke(opcode="invoke-static", registers=["v0", "v1", "v2", "v3", "v4", "v5"], method=ref)


def test_range_must_be_contiguous():
    ref = MethodReference.parse("La;->f(II)V")
    with pytest.raises(ValidationError):
        Invoke(opcode="invoke-static/range", registers=["v0", "p1"], method=ref)


def test_const_literal_width():
    assert ConstLiteral(opcode="const/high16", register="v0", value=0x7F000000).value == 0x7F000000
    with pytest.raises(ValidationError):
        ConstLiteral(opcode="const/16", register="v0", value=1 << 16)


def test_array_data_values_must_fit():
    with pytest.raises(ValidationError):
        ArrayData(element_width=1, values=[300])


def test_registers_and_locals_are_exclusive():
    with pytest.raises(ValidationError):
        SmaliMethod(name="f", signature=MethodSignature(), registers=2, locals=1)


def test_annotation_value_needs_payload():
    with pytest.raises(ValidationError):
        AnnotationValue(type=AnnotationValueType.ENUM)
    with pytest.raises(ValidationError):
        AnnotationValue(type=AnnotationValueType.LITERAL)


def test_bad_register_name():
    with pytest.raises(ValidationError):
        LocalStart(register="r0")


@pytest.mark.parametrize(
    "model",
    [*INSTRUCTION_TYPES, SmaliClass, SmaliField, SmaliMethod, MethodParameter, LocalVariableRange],
)
def test_no_field_shadows_a_base_model_attribute(model):
    assert [name for name in model.model_fields if hasattr(BaseModel, name)] == []


def test_register_accepts_field_name_and_alias():
    assert LocalEnd(reg="v1") == LocalEnd(register="v1")
    assert OneRegister.model_validate({"opcode": "throw", "register": "v0"}).reg == "v0"
    assert MethodParameter(reg="p1").reg == "p1"

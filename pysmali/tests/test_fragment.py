from __future__ import annotations

import pytest

from pysmali import (
    SmaliStructureError,
    SmaliSyntaxError,
    SmaliTrailingInputError,
    parse_fragment,
    parse_instruction_fragment,
)
from pysmali.instructions import (
    ConstLiteral,
    FilledNewArray,
    Goto,
    IfTest,
    IfTestZero,
    InstanceFieldOperation,
    Invoke,
    InvokeCustom,
    InvokePolymorphic,
    Label,
    NoOperands,
    OneRegister,
    PackedSwitchData,
    PayloadReference,
    ThreeRegisters,
    TwoRegisters,
    TwoRegistersType,
    TypeOperation,
)


@pytest.mark.parametrize("text", ["", "   \n\n", "# just a comment\n  # another\n"])
def test_empty_fragment(text):
    assert parse_fragment(text) == []


def test_alias():
    assert parse_instruction_fragment is parse_fragment


def test_simple_sequence():
    items = parse_fragment(
        """
        const/4 v0, 0x1
        if-eqz v0, :cond_0
        add-int v1, v0, v0
        move v2, v1
        :cond_0
        return-void
        """
    )
    assert items == [
        ConstLiteral(opcode="const/4", register="v0", value=1),
        IfTestZero(opcode="if-eqz", register="v0", target="cond_0"),
        ThreeRegisters(opcode="add-int", destination="v1", first="v0", second="v0"),
        TwoRegisters(opcode="move", destination="v2", source="v1"),
        Label(name="cond_0"),
        NoOperands(opcode="return-void"),
    ]


def test_operand_shapes():
    items = parse_fragment(
        """
        new-instance v0, Ljava/lang/StringBuilder;
        instance-of v1, v0, Ljava/lang/CharSequence;
        iget-object v2, p0, Lcom/a/B;->name:Ljava/lang/String;
        filled-new-array {v0, v1}, [Ljava/lang/Object;
        if-ne v0, v1, :end
        goto/16 :end
        fill-array-data v0, :data
        throw v0
        """
    )
    assert [type(i) for i in items] == [
        TypeOperation,
        TwoRegistersType,
        InstanceFieldOperation,
        FilledNewArray,
        IfTest,
        Goto,
        PayloadReference,
        OneRegister,
    ]
    assert items[2].field.owner.to_jni() == "Lcom/a/B;"
    assert items[3].type.to_jni() == "[Ljava/lang/Object;"


def test_empty_register_list():
    (invoke,) = parse_fragment("invoke-static {}, Lcom/a/B;->f()V")
    assert isinstance(invoke, Invoke)
    assert invoke.registers == []
    assert invoke.invoke_kind == "static"


def test_invoke_polymorphic_and_custom():
    poly, custom = parse_fragment(
        "invoke-polymorphic {p0, v0}, Ljava/lang/invoke/MethodHandle;->invoke([Ljava/lang/Object;)"
        "Ljava/lang/Object;, (I)V\n"
        'invoke-custom {v0}, call_site_0("run", ()V, "x, y")@Lcom/a/B;->bootstrap()V\n'
    )
    assert isinstance(poly, InvokePolymorphic)
    assert poly.prototype.to_jni() == "(I)V"
    assert isinstance(custom, InvokeCustom)
    assert custom.call_site == 'call_site_0("run", ()V, "x, y")@Lcom/a/B;->bootstrap()V'


def test_payload_in_fragment():
    items = parse_fragment(
        """
        :table
        .packed-switch -0x1
            :a
            :b
        .end packed-switch
        """
    )
    assert items[1] == PackedSwitchData(first_key=-1, targets=["a", "b"])


@pytest.mark.parametrize(
    "text",
    [
        ".method public f()V",
        ".end method",
        ".field x:I",
        ".registers 3",
        ".annotation runtime La;",
    ],
)
def test_trailing_non_instruction_content(text):
    with pytest.raises(SmaliTrailingInputError) as exc:
        parse_fragment("nop\n" + text)
    assert exc.value.error_code == "TRAILING_INPUT"
    assert exc.value.line == 2


def test_unknown_opcode():
    with pytest.raises(SmaliSyntaxError) as exc:
        parse_fragment("nop\nfly v0")
    assert exc.value.error_code == "UNKNOWN_OPCODE"
    assert exc.value.line == 2
    assert exc.value.source_line == "fly v0"


@pytest.mark.parametrize(
    "text",
    [
        "const/4 v0, 0x10",
        "const/high16 v0, 0x1234",
        "add-int/lit8 v0, v1, 0x100",
        "invoke-static/range {v0, v2}, La;->f(II)V",
        "invoke-virtual {v0, v1, v2, v3, v4, v5}, La;->f(IIIII)V",
        "return-void v0",
        "move v0",
        "move x0, v1",
        "goto cond_0",
        "const-string v0, unquoted",
        "const-string v0, \"open",
        "move v0,, v1",
    ],
)
def test_bad_operands(text):
    with pytest.raises(SmaliSyntaxError) as exc:
        parse_fragment(text)
    assert exc.value.line == 1


def test_unterminated_payload():
    with pytest.raises(SmaliStructureError) as exc:
        parse_fragment(".array-data 1\n    0x1t\n")
    assert exc.value.error_code == "UNTERMINATED_BLOCK"


def test_range_registers_expand():
    (invoke,) = parse_fragment("invoke-virtual/range {p0 .. p2}, La;->f(II)V")
    assert invoke.registers == ["p0", "p1", "p2"]

from __future__ import annotations

import pytest

from pysmali import (
    FieldReference,
    MethodReference,
    MethodSignature,
    ObjectIdentifier,
    SmaliSyntaxError,
    TypeKind,
    TypeSignature,
)
from pysmali.signatures import INT, LONG, VOID


def test_java_name_converts_to_jni():
    assert ObjectIdentifier.from_java_type("com.basic.Test").as_jni_type() == "Lcom/basic/Test;"


def test_jni_name_converts_to_java():
    assert ObjectIdentifier.from_jni_type("Lcom/basic/Test;").as_java_type() == "com.basic.Test"


@pytest.mark.parametrize("name", ["com.basic.Test", "Outer$Inner", "a.b.c$1", "kotlin.jvm.internal.Ref$ObjectRef"])
def test_java_name_round_trips(name):
    assert ObjectIdentifier.from_java_type(name).as_java_type() == name


def test_identifier_parts():
    ident = ObjectIdentifier.from_jni_type("Lcom/basic/Test$Inner;")
    assert ident.name == "com/basic/Test$Inner"
    assert ident.package == "com.basic"
    assert ident.simple_name == "Test$Inner"
    assert ObjectIdentifier(name="Default").package == ""


@pytest.mark.parametrize("bad", ["com..Test", ".Test", "com.Test.", "com/Test", "", "has space"])
def test_malformed_java_name_is_rejected(bad):
    with pytest.raises(SmaliSyntaxError) as exc:
        ObjectIdentifier.from_java_type(bad)
    assert exc.value.error_code == "BAD_DESCRIPTOR"


@pytest.mark.parametrize("bad", ["com/Test", "Lcom/Test", "L;", "Lcom//Test;", "I"])
def test_malformed_jni_name_is_rejected(bad):
    with pytest.raises(SmaliSyntaxError):
        ObjectIdentifier.from_jni_type(bad)


@pytest.mark.parametrize(
    "descriptor, kind",
    [
        ("V", TypeKind.VOID),
        ("Z", TypeKind.BOOL),
        ("B", TypeKind.BYTE),
        ("C", TypeKind.CHAR),
        ("S", TypeKind.SHORT),
        ("I", TypeKind.INT),
        ("J", TypeKind.LONG),
        ("F", TypeKind.FLOAT),
        ("D", TypeKind.DOUBLE),
    ],
)
def test_primitive_descriptors(descriptor, kind):
    sig = TypeSignature.from_jni(descriptor)
    assert sig.kind is kind
    assert sig.to_jni() == descriptor


def test_array_descriptor():
    sig = TypeSignature.from_jni("[[Ljava/lang/String;")
    assert sig.kind is TypeKind.ARRAY
    assert sig.dimensions == 2
    assert sig.element.object_type.as_java_type() == "java.lang.String"
    assert sig.to_jni() == "[[Ljava/lang/String;"
    assert sig.as_java_type() == "java.lang.String[][]"


def test_array_of_array_flattens():
    nested = TypeSignature.array_of(TypeSignature.array_of(INT), 2)
    assert nested == TypeSignature.from_jni("[[[I")


@pytest.mark.parametrize("bad", ["", "[", "[V", "X", "II", "Ljava/lang/String", "Ljava/lang/String;I"])
def test_malformed_type_descriptor(bad):
    with pytest.raises(SmaliSyntaxError):
        TypeSignature.from_jni(bad)


def test_type_predicates():
    assert INT.is_primitive and not INT.is_reference
    assert LONG.is_wide
    assert not VOID.is_primitive
    assert TypeSignature.from_jni("[I").is_reference


def test_method_signature_from_jni():
    sig = MethodSignature.from_jni("([I)V")
    assert sig.parameters == (TypeSignature.array_of(INT),)
    assert sig.return_type == VOID


def test_method_signature_mixed_parameters():
    text = "(ILjava/lang/String;[JZ)[Ljava/lang/Object;"
    sig = MethodSignature.from_jni(text)
    assert [p.to_jni() for p in sig.parameters] == ["I", "Ljava/lang/String;", "[J", "Z"]
    assert sig.to_jni() == text


def test_method_signature_register_count():
    sig = MethodSignature.from_jni("(IJLjava/lang/String;D)V")
    assert sig.register_count(is_static=True) == 6
    assert sig.register_count() == 7


@pytest.mark.parametrize("bad", ["I)V", "(I", "(I)", "(V)V", "(I)VV", "(Q)V"])
def test_malformed_method_signature(bad):
    with pytest.raises(SmaliSyntaxError):
        MethodSignature.from_jni(bad)


def test_field_reference():
    ref = FieldReference.parse("Lcom/example/Foo;->count:I")
    assert ref.owner.object_type.name == "com/example/Foo"
    assert ref.name == "count"
    assert ref.type == INT
    assert ref.to_smali() == "Lcom/example/Foo;->count:I"


def test_method_reference_on_array_owner():
    ref = MethodReference.parse("[Ljava/lang/Object;->clone()Ljava/lang/Object;")
    assert ref.owner.kind is TypeKind.ARRAY
    assert ref.name == "clone"
    assert ref.to_smali() == "[Ljava/lang/Object;->clone()Ljava/lang/Object;"


def test_constructor_reference():
    ref = MethodReference.parse("Ljava/lang/Object;-><init>()V")
    assert ref.name == "<init>"


@pytest.mark.parametrize("bad", ["Lcom/Foo;count:I", "Lcom/Foo;->count", "Lcom/Foo;->:I"])
def test_malformed_field_reference(bad):
    with pytest.raises(SmaliSyntaxError):
        FieldReference.parse(bad)

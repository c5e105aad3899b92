"""pysmali – parse and write smali, the Dalvik bytecode assembly language."""

import logging

from pysmali.errors import (
    SmaliError,
    SmaliIOError,
    SmaliParseError,
    SmaliStructureError,
    SmaliSyntaxError,
    SmaliTrailingInputError,
)
from pysmali.files import (
    discover_classes,
    find_smali_files,
    read_class_from_file,
    write_class_to_file,
)
from pysmali.instructions import SmaliInstruction
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
    SmaliSettings,
)
from pysmali.parser import parse_class, parse_fragment, parse_instruction_fragment
from pysmali.signatures import (
    FieldReference,
    MethodReference,
    MethodSignature,
    ObjectIdentifier,
    TypeKind,
    TypeSignature,
)
from pysmali.writer import render_class, render_instruction, render_instructions

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "parse_class",
    "parse_fragment",
    "parse_instruction_fragment",
    "render_class",
    "render_instruction",
    "render_instructions",
    "read_class_from_file",
    "write_class_to_file",
    "discover_classes",
    "find_smali_files",
    "SmaliSettings",
    "SmaliClass",
    "SmaliField",
    "SmaliMethod",
    "MethodParameter",
    "AccessFlag",
    "Annotation",
    "AnnotationValue",
    "AnnotationValueType",
    "AnnotationVisibility",
    "HiddenApiRestriction",
    "SmaliInstruction",
    "ObjectIdentifier",
    "TypeKind",
    "TypeSignature",
    "MethodSignature",
    "FieldReference",
    "MethodReference",
    "SmaliError",
    "SmaliParseError",
    "SmaliStructureError",
    "SmaliSyntaxError",
    "SmaliTrailingInputError",
    "SmaliIOError",
]

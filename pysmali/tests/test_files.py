from __future__ import annotations

import logging

import pytest

from pysmali import (
    SmaliClass,
    SmaliIOError,
    SmaliSettings,
    SmaliStructureError,
    discover_classes,
    find_smali_files,
    read_class_from_file,
    write_class_to_file,
)


@pytest.fixture
def smali_tree(tmp_path, class_text):
    (tmp_path / "sub").mkdir()
    (tmp_path / "A.smali").write_text(class_text("A"), encoding="utf-8")
    (tmp_path / "B.smali").write_text(class_text("com.b.B"), encoding="utf-8")
    (tmp_path / "sub" / "C.smali").write_text(class_text("sub.C"), encoding="utf-8")
    (tmp_path / "sub" / "notes.txt").write_text("not smali", encoding="utf-8")
    return tmp_path


def test_read_class_from_file(sample_path):
    cls = read_class_from_file(sample_path)
    assert cls.name.simple_name == "Sample"
    assert SmaliClass.read_from_file(sample_path) == cls


def test_read_missing_file(tmp_path):
    path = tmp_path / "Missing.smali"
    with pytest.raises(SmaliIOError) as exc:
        read_class_from_file(path)
    assert exc.value.error_code == "IO_ERROR"
    assert exc.value.details["path"] == str(path)
    assert isinstance(exc.value.__cause__, OSError)


def test_parse_error_carries_path(tmp_path):
    path = tmp_path / "Broken.smali"
    path.write_text(".class public LBroken;\n.method public f()V\n", encoding="utf-8")
    with pytest.raises(SmaliStructureError) as exc:
        read_class_from_file(path)
    assert exc.value.details["path"] == str(path)
    assert exc.value.line == 2


def test_write_creates_parent_directories(tmp_path, sample_class):
    target = tmp_path / "out" / "com" / "example" / "app" / "Sample.smali"
    write_class_to_file(sample_class, target)
    assert target.read_text(encoding="utf-8") == sample_class.to_smali()
    assert read_class_from_file(target) == sample_class


def test_write_with_settings(tmp_path, sample_class):
    target = tmp_path / "Sample.smali"
    sample_class.write_to_file(target, SmaliSettings(indent="  ", encoding="utf-16"))
    text = target.read_text(encoding="utf-16")
    assert "\n  return-void\n" in text
    assert read_class_from_file(target, SmaliSettings(encoding="utf-16")) == sample_class


def test_discover_classes(smali_tree):
    classes = discover_classes(smali_tree)
    assert [c.name.as_java_type() for c in classes] == ["A", "com.b.B", "sub.C"]


def test_discover_alias(smali_tree):
    assert find_smali_files is discover_classes


def test_discover_custom_extension(smali_tree, class_text):
    (smali_tree / "D.txt").write_text(class_text("D"), encoding="utf-8")
    (smali_tree / "sub" / "notes.txt").unlink()
    classes = discover_classes(smali_tree, SmaliSettings(file_extension=".txt"))
    assert [c.name.name for c in classes] == ["D"]


def test_discover_empty_directory(tmp_path):
    assert discover_classes(tmp_path) == []


def test_discover_aborts_on_first_bad_file(smali_tree):
    bad = smali_tree / "sub" / "Bad.smali"
    bad.write_text(".class public LBad;\nfly\n", encoding="utf-8")
    with pytest.raises(SmaliStructureError) as exc:
        discover_classes(smali_tree)
    assert exc.value.details["path"] == str(bad)


def test_discover_missing_root(tmp_path):
    with pytest.raises(SmaliIOError):
        discover_classes(tmp_path / "nope")


def test_discover_logs_summary(smali_tree, caplog):
    caplog.set_level(logging.DEBUG, logger="pysmali")
    discover_classes(smali_tree)
    messages = [r.getMessage() for r in caplog.records]
    assert f"discovered 3 smali classes under {smali_tree}" in messages
    assert sum(m.startswith("parsing ") for m in messages) == 3

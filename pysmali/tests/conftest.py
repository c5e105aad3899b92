from __future__ import annotations

from pathlib import Path

import pytest

from pysmali import SmaliClass, parse_class

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def sample_path() -> Path:
    return DATA_DIR / "Sample.smali"


@pytest.fixture
def sample_text(sample_path: Path) -> str:
    return sample_path.read_text(encoding="utf-8")


@pytest.fixture
def sample_class(sample_text: str) -> SmaliClass:
    return parse_class(sample_text)


@pytest.fixture
def class_text():
    """Build the smallest valid class text for a dotted name, with a body appended."""

    def build(name: str, body: str = "") -> str:
        descriptor = "L" + name.replace(".", "/") + ";"
        return f".class public {descriptor}\n.super Ljava/lang/Object;\n{body}"

    return build

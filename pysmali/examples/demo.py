#!/usr/bin/env python3
"""
Minimal demo: discover smali classes → summarise them → edit one → write it back.

Usage:
    # Disassemble first:  apktool d app.apk -o app_out
    python demo.py app_out/smali [out_dir]
"""

from __future__ import annotations

import sys
from pathlib import Path

from pysmali import SmaliError, discover_classes, parse_fragment, render_instructions
from pysmali.instructions import ConstString, Invoke


def main(smali_root: str, out_dir: str | None = None) -> None:
    # 1. Discover every class under the tree
    print(f"Parsing {smali_root}…")
    try:
        classes = discover_classes(smali_root)
    except SmaliError as e:
        print(f"  failed: {e}")
        for key, value in e.details.items():
            print(f"    {key}: {value}")
        sys.exit(1)
    print(f"  classes : {len(classes)}")
    print(f"  methods : {sum(len(c.methods) for c in classes)}")
    print(f"  fields  : {sum(len(c.fields) for c in classes)}")
    print()

    # 2. List classes (first 10)
    print(f"Classes ({len(classes)} total, showing first 10):")
    for cls in classes[:10]:
        super_name = cls.super_class.as_java_type() if cls.super_class else "-"
        print(f"  {cls.name.as_java_type():50s} extends {super_name}")
    print()

    # 3. Strings and call targets across the tree
    strings = []
    callees: dict[str, int] = {}
    for cls in classes:
        for method in cls.methods:
            for item in method.instructions:
                if isinstance(item, ConstString):
                    strings.append((item.value, cls.name.as_java_type()))
                elif isinstance(item, Invoke):
                    target = item.method.to_smali()
                    callees[target] = callees.get(target, 0) + 1

    print("Strings containing 'http':")
    for value, owner in [s for s in strings if "http" in s[0]][:5]:
        print(f"    \"{value[:80]}\" in {owner}")
    print()

    print("Most called methods:")
    for target, count in sorted(callees.items(), key=lambda kv: -kv[1])[:5]:
        print(f"  {count:5d}  {target}")
    print()

    # 4. Prepend a log call to the first method with a body and write the class back
    for cls in classes:
        method = next((m for m in cls.methods if m.instructions and m.locals), None)
        if method is None:
            continue
        patch = parse_fragment(
            f'const-string v0, "entered {method.name}"\n'
            'invoke-static {v0}, Lcom/example/Trace;->log(Ljava/lang/String;)V\n'
        )
        method.instructions[:0] = patch
        print(f"Patched {cls.name.as_java_type()}->{method.descriptor}:")
        for line in render_instructions(patch).splitlines():
            print(f"  {line}")

        if out_dir:
            target = Path(out_dir) / (cls.name.name + ".smali")
            cls.write_to_file(target)
            print(f"  written to {target}")
        else:
            print()
            for line in cls.to_smali().splitlines()[:25]:
                print(f"  {line}")
        break

    print("\nDone.")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(f"Usage: {sys.argv[0]} <smali_dir> [out_dir]")
        sys.exit(1)
    main(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)

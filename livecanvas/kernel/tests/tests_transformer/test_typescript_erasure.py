"""
livecanvas Transformer — TypeScript Erasure Tests

Type-only syntax is removed; runtime code passes through untouched.
"""

from livecanvas.kernel.transformer import transform_source


def compile_ts(source: str, path: str = "/util.ts") -> str:
    result = transform_source(path, source)
    assert result.ok, result.error
    return result.compiled_code


class TestAnnotations:
    def test_parameter_and_return_types(self):
        code = compile_ts("export function greet(name: string): string { return name; }")
        assert code == "export function greet(name) { return name; }"

    def test_variable_annotation(self):
        code = compile_ts("const count: number = 1;")
        assert code == "const count = 1;"

    def test_optional_parameter(self):
        code = compile_ts("function f(a?: number) { return a; }")
        assert code == "function f(a) { return a; }"

    def test_type_arguments(self):
        code = compile_ts("const [count, setCount] = useState<number>(0);")
        assert code == "const [count, setCount] = useState(0);"

    def test_generic_function(self):
        code = compile_ts("function first<T>(items: T[]): T { return items[0]; }")
        assert code == "function first(items) { return items[0]; }"

    def test_as_expression(self):
        code = compile_ts('const el = document.getElementById("root") as HTMLElement;')
        assert code == 'const el = document.getElementById("root");'

    def test_non_null_assertion(self):
        code = compile_ts("const n = maybe!.value;")
        assert code == "const n = maybe.value;"


class TestDeclarations:
    def test_interface_removed(self):
        code = compile_ts("interface Props { label: string }\nexport const x = 1;\n")
        assert "interface" not in code
        assert "export const x = 1;" in code

    def test_type_alias_removed(self):
        code = compile_ts("type Size = 'sm' | 'lg';\nconst s = 'sm';\n")
        assert "Size" not in code
        assert "const s = 'sm';" in code

    def test_exported_types_removed(self):
        code = compile_ts("export type Id = string;\nexport interface User { id: Id }\nexport const ok = true;\n")
        assert code.strip() == "export const ok = true;"

    def test_declare_removed(self):
        code = compile_ts("declare const API_URL: string;\nexport const x = 1;\n")
        assert "declare" not in code

    def test_class_members(self):
        code = compile_ts(
            "class Store implements Repo {\n"
            "  private items: string[] = [];\n"
            "  public add(item: string): void { this.items.push(item); }\n"
            "}\n"
        )
        assert "implements" not in code
        assert "private" not in code
        assert "public" not in code
        assert ": string" not in code
        assert "items = [];" in code
        assert "add(item) { this.items.push(item); }" in code


class TestTypeOnlyImports:
    def test_import_type_statement_removed(self):
        result = transform_source("/a.ts", 'import type { User } from "./types";\nexport const a = 1;\n')
        assert "import" not in result.compiled_code
        assert result.imports == []

    def test_type_specifiers_removed(self):
        result = transform_source("/a.tsx", 'import { useState, type FC } from "react";\n')
        assert result.compiled_code.startswith('import { useState } from "react";')
        assert result.imports == ["react"]


class TestExportLists:
    def test_local_type_specifier_removed(self):
        code = compile_ts("export { A, type B };\nconst A = 1;\n")
        assert code == "export { A };\nconst A = 1;\n"

    def test_re_export_type_specifier_removed(self):
        result = transform_source("/index.ts", 'export { Button, type ButtonProps } from "./Button";\n')
        assert result.compiled_code == 'export { Button } from "@/Button";\n'
        assert result.imported_names == {"@/Button": ["Button"]}


class TestClassModifiers:
    def test_readonly_field(self):
        code = compile_ts("class A { readonly x = 1; }")
        assert code == "class A { x = 1; }"

    def test_abstract_class_and_members(self):
        code = compile_ts("abstract class C { abstract m(): void; abstract size: number; run() { return 1; } }")
        assert "abstract" not in code
        assert code.startswith("class C {")
        assert "m()" not in code
        assert "size" not in code
        assert "run() { return 1; }" in code

    def test_exported_abstract_class(self):
        code = compile_ts("export abstract class Shape {}\n")
        assert code == "export class Shape {}\n"

    def test_declare_field_removed(self):
        code = compile_ts("class A { declare x: number; y = 2; }")
        assert "x" not in code.replace("class A", "")
        assert "y = 2;" in code


class TestThisParameter:
    def test_only_parameter(self):
        code = compile_ts("function f(this: Window) { return this; }")
        assert code == "function f() { return this; }"

    def test_followed_by_other_parameters(self):
        code = compile_ts("function g(this: Window, e: Event, n?: number) {}")
        assert code == "function g(e, n) {}"


class TestParameterProperties:
    def test_assigned_at_top_of_constructor(self):
        code = compile_ts(
            "class Point {\n"
            "  constructor(private x: number, public readonly y: number, z: number) {}\n"
            "}\n"
        )
        assert "constructor(x, y, z) { this.x = x; this.y = y;}" in code
        assert "this.z" not in code
        assert code.count("\n") == 3

    def test_assigned_after_super_call(self):
        code = compile_ts(
            "class Dog extends Animal {\n"
            "  constructor(private name: string) {\n"
            "    super(name);\n"
            "    this.bark();\n"
            "  }\n"
            "}\n"
        )
        assert "super(name); this.name = name;" in code
        assert code.index("this.name = name;") < code.index("this.bark();")

    def test_plain_constructor_untouched(self):
        code = compile_ts("class A { constructor(x: number) { this.x = x; } }")
        assert code == "class A { constructor(x) { this.x = x; } }"

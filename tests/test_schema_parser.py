"""
Tests for the schema parser.

Declarations, field modifiers, aliases, skipping and syntax errors.
"""

import pytest

from schema_nodes import FieldType, SchemaError, validate_units
from schema_parser import SchemaSyntaxError, parse_source


class TestStructDeclarations:
    """Tests for recognizing record declarations."""

    def test_plain_struct(self):
        unit = parse_source("struct Point { int x; int y; };", "point.h")
        assert unit.name == "point.h"
        assert len(unit.records) == 1
        record = unit.records[0]
        assert record.names == ["struct Point"]
        assert [f.name for f in record.fields] == ["x", "y"]
        assert record.fields[0].type == FieldType("int")

    def test_typedef_struct_with_tag(self):
        unit = parse_source("typedef struct Point { int x; } Point;")
        assert unit.records[0].names == ["struct Point", "Point"]

    def test_anonymous_typedef_struct(self):
        unit = parse_source("typedef struct { int x; } Vec;")
        assert unit.records[0].names == ["Vec"]

    def test_records_keep_declaration_order(self):
        unit = parse_source("""
            struct A { int a; };
            struct B { int b; };
            typedef struct { int c; } C;
        """)
        assert [r.name for r in unit.records] == ["struct A", "struct B", "C"]

    def test_empty_struct(self):
        unit = parse_source("struct Empty { };")
        assert unit.records[0].fields == []

    def test_record_line_number(self):
        unit = parse_source("\n\nstruct A { int a; };")
        assert unit.records[0].line == 3


class TestFieldTypes:
    """Tests for primitive spellings and declarator modifiers."""

    def parse_fields(self, body: str):
        return parse_source(f"struct T {{ {body} }};").records[0].fields

    def test_primitive_spellings(self):
        fields = self.parse_fields("""
            char a; short b; short int c; int d; long e; long int f;
            long long g; long long int h; float i; double j; bool k; _Bool l;
        """)
        assert [f.type.base_type for f in fields] == [
            "char", "short", "short", "int", "long", "long", "long long",
            "long long", "float", "double", "bool", "bool",
        ]
        assert all(f.type.is_embedded for f in fields)

    def test_char_pointer_is_string(self):
        field = self.parse_fields("char* name;")[0]
        assert field.type == FieldType("string")
        assert not field.type.is_embedded

    def test_string_keyword(self):
        field = self.parse_fields("string name;")[0]
        assert field.type == FieldType("string")

    def test_const_char_pointer_is_string(self):
        field = self.parse_fields("const char* name;")[0]
        assert field.type == FieldType("string")

    def test_pointer_to_primitive(self):
        field = self.parse_fields("int* maybe;")[0]
        assert field.type == FieldType("int", is_pointer=True)

    def test_struct_pointer(self):
        field = self.parse_fields("struct Point* p;")[0]
        assert field.type == FieldType("struct Point", is_pointer=True)

    def test_typedef_name_embedded(self):
        field = self.parse_fields("Point p;")[0]
        assert field.type == FieldType("Point")
        assert field.type.is_embedded_record

    def test_array_of_pointers(self):
        field = self.parse_fields("Point* corners[];")[0]
        assert field.type == FieldType("Point", is_pointer=True, is_array=True)

    def test_array_without_star(self):
        field = self.parse_fields("int values[];")[0]
        assert field.type == FieldType("int", is_array=True)

    def test_string_array(self):
        field = self.parse_fields("char* tags[];")[0]
        assert field.type == FieldType("string", is_array=True)

    def test_multiple_declarators(self):
        fields = self.parse_fields("int x, *y, z[];")
        assert [f.type for f in fields] == [
            FieldType("int"),
            FieldType("int", is_pointer=True),
            FieldType("int", is_array=True),
        ]

    def test_member_named_like_a_type_word(self):
        fields = self.parse_fields("int long;")
        assert fields[0].name == "long"
        assert fields[0].type == FieldType("int")


class TestSkipping:
    """Tests for ignored input."""

    def test_comments_and_preprocessor(self):
        unit = parse_source("""
            #include <stdbool.h>
            #define MAX(a, b) \\
                ((a) > (b) ? (a) : (b))
            // line comment
            /* block
               comment */
            struct A { int a; /* inline */ };
        """)
        assert [r.name for r in unit.records] == ["struct A"]

    def test_other_declarations_are_skipped(self):
        unit = parse_source("""
            struct Forward;
            typedef struct Forward Forward;
            enum Color { RED, GREEN };
            int add(int a, int b);
            struct A* make_a(void);
            struct A { int a; };
        """)
        assert [r.name for r in unit.records] == ["struct A"]


class TestSyntaxErrors:
    """Tests for rejected declarations."""

    def test_missing_semicolon(self):
        with pytest.raises(SchemaSyntaxError) as exc:
            parse_source("struct A { int a }", "bad.h")
        assert exc.value.source == "bad.h"
        assert exc.value.line == 1
        assert "expected ';'" in str(exc.value)

    def test_unterminated_body(self):
        with pytest.raises(SchemaSyntaxError):
            parse_source("struct A { int a;")

    def test_fixed_size_array(self):
        with pytest.raises(SchemaSyntaxError, match="fixed-size"):
            parse_source("struct A { int a[4]; };")

    def test_double_pointer(self):
        with pytest.raises(SchemaSyntaxError, match="multiple indirection"):
            parse_source("struct A { int** a; };")

    def test_unsigned(self):
        with pytest.raises(SchemaSyntaxError, match="unsigned"):
            parse_source("struct A { unsigned int a; };")

    def test_pointer_to_string(self):
        with pytest.raises(SchemaSyntaxError, match="pointer to string"):
            parse_source("struct A { string* a; };")

    def test_error_position(self):
        with pytest.raises(SchemaSyntaxError) as exc:
            parse_source("struct A {\n  int a;\n  int @b;\n};")
        assert exc.value.line == 3
        assert exc.value.column == 7

    def test_syntax_error_is_schema_error(self):
        with pytest.raises(SchemaError):
            parse_source("struct A { int a[2]; };")


class TestValidation:
    """Tests for schema validation across units."""

    def test_duplicate_field(self):
        unit = parse_source("struct A { int a; int a; };")
        with pytest.raises(SchemaError, match="duplicate field"):
            validate_units([unit])

    def test_duplicate_type_across_units(self):
        first = parse_source("struct A { int a; };", "a.h")
        second = parse_source("struct A { int b; };", "b.h")
        with pytest.raises(SchemaError, match="more than once"):
            validate_units([first, second])

    def test_alias_clash(self):
        unit = parse_source("""
            typedef struct A { int a; } B;
            struct B { int b; };
            typedef struct { int c; } B;
        """)
        with pytest.raises(SchemaError, match="'B'"):
            validate_units([unit])

    def test_errors_name_the_declaration_line(self):
        unit = parse_source("\n\nstruct A {\n  int a;\n  int a;\n};", "dup.h")
        with pytest.raises(SchemaError, match=r"struct A \(line 3\): duplicate field 'a'"):
            validate_units([unit])

    def test_duplicate_type_names_second_declaration(self):
        unit = parse_source("struct A { int a; };\nstruct A { int b; };")
        with pytest.raises(SchemaError, match=r"\(line 2\)"):
            validate_units([unit])

    @pytest.mark.parametrize("alias", ["string", "bool"])
    def test_primitive_kind_as_record_name(self, alias):
        """A record named like a primitive kind could never be dispatched to"""
        unit = parse_source(f"typedef struct {{ int a; }} {alias};")
        with pytest.raises(SchemaError, match=f"'{alias}' is a primitive kind"):
            validate_units([unit])

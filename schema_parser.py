"""
Marshaller Schema Parser

Extracts record schemas from C-style declarations:

    struct Point { int x; int y; };
    typedef struct Line { struct Point* a; Point* b; } Line;
    typedef struct { char* name; Point* corners[]; bool closed; } Shape;

Field declarators:
    T name;        embedded by value
    T* name;       pointer (char* is a string)
    T* name[];     null-terminated array of pointers to T
    T name[];      same storage as T* name[]

Comments and preprocessor lines are skipped, as is any top-level declaration
that is not a struct definition (prototypes, enums, forward declarations).
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from schema_nodes import Field, FieldType, Record, SchemaError, SourceUnit


class SchemaSyntaxError(SchemaError):
    """Syntax error in a declaration file"""

    def __init__(self, source: str, line: int, column: int, message: str):
        self.source = source
        self.line = line
        self.column = column
        self.message = message
        super().__init__(f"{source}:{line}:{column}: {message}")


@dataclass
class Token:
    kind: str   # "ident", "number", "punct", "eof"
    text: str
    line: int
    column: int


TOKEN_PATTERN = re.compile(r'''
    (?P<space>[ \t\r\f\v]+)
  | (?P<newline>\n)
  | (?P<line_comment>//[^\n]*)
  | (?P<block_comment>/\*.*?\*/)
  | (?P<ident>[A-Za-z_][A-Za-z_0-9]*)
  | (?P<number>[0-9][0-9A-Za-z_]*)
  | (?P<punct>[{}();*\[\],=])
  | (?P<other>.)
''', re.VERBOSE | re.DOTALL)

# Words that combine into a primitive kind
PRIMITIVE_WORDS = {"char", "short", "int", "long", "float", "double", "bool", "_Bool", "string"}

PRIMITIVE_SPELLINGS = {
    ("char",): "char",
    ("short",): "short",
    ("short", "int"): "short",
    ("int",): "int",
    ("long",): "long",
    ("long", "int"): "long",
    ("long", "long"): "long long",
    ("long", "long", "int"): "long long",
    ("float",): "float",
    ("double",): "double",
    ("bool",): "bool",
    ("_Bool",): "bool",
    ("string",): "string",
}

QUALIFIERS = {"const", "volatile"}


def tokenize(text: str, source: str) -> List[Token]:
    tokens = []
    line = 1
    line_start = 0
    at_line_start = True
    pos = 0
    while pos < len(text):
        # Preprocessor directives run to the end of the (continued) line
        if at_line_start and text[pos] == '#':
            end = pos
            while True:
                end = text.find('\n', end)
                if end < 0:
                    end = len(text)
                    break
                if text[end - 1] != '\\':
                    break
                end += 1
            line += text.count('\n', pos, end)
            pos = end
            continue

        match = TOKEN_PATTERN.match(text, pos)
        kind = match.lastgroup
        value = match.group()
        column = pos - line_start + 1

        if kind == "newline":
            line += 1
            line_start = match.end()
            at_line_start = True
        elif kind == "block_comment":
            newlines = value.count('\n')
            if newlines:
                line += newlines
                line_start = pos + value.rfind('\n') + 1
        elif kind == "other":
            if value == '/' and text.startswith('/*', pos):
                raise SchemaSyntaxError(source, line, column, "unterminated comment")
            raise SchemaSyntaxError(source, line, column, f"unexpected character {value!r}")
        elif kind in ("ident", "number", "punct"):
            tokens.append(Token(kind, value, line, column))
            at_line_start = False
        pos = match.end()

    tokens.append(Token("eof", "", line, pos - line_start + 1))
    return tokens


class SchemaParser:
    """Recursive descent parser over the declaration token stream."""

    def __init__(self, text: str, source: str = "<input>"):
        self.source = source
        self.tokens = tokenize(text, source)
        self.pos = 0

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 1) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.current
        if token.kind != "eof":
            self.pos += 1
        return token

    def error(self, message: str, token: Optional[Token] = None) -> SchemaSyntaxError:
        token = token or self.current
        return SchemaSyntaxError(self.source, token.line, token.column, message)

    def expect(self, text: str) -> Token:
        token = self.current
        if token.text != text or token.kind == "eof":
            found = token.text or "end of input"
            raise self.error(f"expected '{text}', found '{found}'")
        return self.advance()

    def expect_ident(self, what: str) -> Token:
        token = self.current
        if token.kind != "ident":
            found = token.text or "end of input"
            raise self.error(f"expected {what}, found '{found}'")
        return self.advance()

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def parse(self) -> SourceUnit:
        unit = SourceUnit(name=self.source)
        while self.current.kind != "eof":
            record = self.parse_declaration()
            if record is not None:
                unit.records.append(record)
        return unit

    def parse_declaration(self) -> Optional[Record]:
        token = self.current
        if token.text == "typedef" and self.peek().text == "struct":
            if self.peek(2).text == "{" or (self.peek(2).kind == "ident" and self.peek(3).text == "{"):
                return self.parse_typedef_struct()
        elif token.text == "struct" and self.peek().kind == "ident" and self.peek(2).text == "{":
            return self.parse_struct()
        self.skip_declaration()
        return None

    def skip_declaration(self):
        """Skip to the ';' that ends the current top-level declaration."""
        depth = 0
        while self.current.kind != "eof":
            token = self.advance()
            if token.text in ("{", "("):
                depth += 1
            elif token.text in ("}", ")"):
                depth -= 1
            elif token.text == ";" and depth <= 0:
                return
        if depth != 0:
            raise self.error("unbalanced braces at end of input")

    def parse_struct(self) -> Record:
        start = self.expect("struct")
        tag = self.expect_ident("struct tag")
        record = Record(names=[f"struct {tag.text}"], line=start.line)
        record.fields = self.parse_body()
        self.expect(";")
        return record

    def parse_typedef_struct(self) -> Record:
        start = self.expect("typedef")
        self.expect("struct")
        names = []
        if self.current.kind == "ident":
            names.append(f"struct {self.advance().text}")
        fields = self.parse_body()
        alias = self.expect_ident("typedef name")
        names.append(alias.text)
        self.expect(";")
        return Record(names=names, fields=fields, line=start.line)

    def parse_body(self) -> List[Field]:
        self.expect("{")
        fields = []
        while self.current.text != "}":
            if self.current.kind == "eof":
                raise self.error("expected '}', found 'end of input'")
            fields.extend(self.parse_member())
        self.expect("}")
        return fields

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def parse_member(self) -> List[Field]:
        base_type = self.parse_type()
        fields = [self.parse_declarator(base_type)]
        while self.current.text == ",":
            self.advance()
            fields.append(self.parse_declarator(base_type))
        self.expect(";")
        return fields

    def parse_type(self) -> str:
        while self.current.text in QUALIFIERS:
            self.advance()

        token = self.current
        if token.text in ("unsigned", "signed"):
            raise self.error(f"'{token.text}' types are not supported")
        if token.text in ("union", "enum"):
            raise self.error(f"{token.text} members are not supported")

        if token.text == "struct":
            self.advance()
            tag = self.expect_ident("struct tag")
            return f"struct {tag.text}"

        if token.text in PRIMITIVE_WORDS:
            words = []
            while self.current.text in PRIMITIVE_WORDS and not self.is_declarator_name():
                words.append(self.advance().text)
            kind = PRIMITIVE_SPELLINGS.get(tuple(words))
            if kind is None:
                raise self.error(f"unsupported type '{' '.join(words)}'", token)
            return kind

        return self.expect_ident("type name").text

    def is_declarator_name(self) -> bool:
        """A primitive word followed by ';', ',' or '[' is a member name (e.g. 'int long;')."""
        return self.peek().text in (";", ",", "[")

    def parse_declarator(self, base_type: str) -> Field:
        stars = 0
        while self.current.text == "*":
            self.advance()
            stars += 1
        while self.current.text in QUALIFIERS:
            self.advance()
        name = self.expect_ident("field name")

        is_array = False
        if self.current.text == "[":
            self.advance()
            if self.current.text != "]":
                raise self.error("fixed-size arrays are not supported, use 'T* name[]'")
            self.expect("]")
            is_array = True

        if stars > 1:
            raise self.error("multiple indirection is not supported, use 'T* name[]' for arrays", name)

        if base_type == "char" and stars == 1:
            field_type = FieldType("string", is_pointer=False, is_array=is_array)
        elif base_type == "string" and stars == 1 and not is_array:
            raise self.error("pointer to string is not representable", name)
        else:
            field_type = FieldType(base_type, is_pointer=stars == 1, is_array=is_array)
        return Field(name=name.text, type=field_type)


def parse_source(text: str, source: str = "<input>") -> SourceUnit:
    """Parse declarations from a string."""
    return SchemaParser(text, source).parse()


def parse_file(path) -> SourceUnit:
    """Parse a declaration file; the unit is named after the file."""
    path = Path(path)
    return parse_source(path.read_text(), str(path))

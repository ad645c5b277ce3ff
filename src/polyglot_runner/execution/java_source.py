from __future__ import annotations

from dataclasses import dataclass

_MODIFIERS = frozenset({"public", "final", "abstract", "static", "strictfp", "sealed"})


@dataclass(frozen=True, slots=True)
class _Word:
    """Identifier token found outside comments and literals.

    Example:
        ```python
        word = _Word(start=0, end=6, text="public", after_dot=False)
        ```
    """

    start: int
    end: int
    text: str
    after_dot: bool


@dataclass(frozen=True, slots=True)
class ClassDeclaration:
    """A `class <Name>` declaration located in Java source.

    Example:
        ```python
        decl = ClassDeclaration(name="Main", is_public=True)
        ```
    """

    name: str
    is_public: bool


def _skip_until(code: str, i: int, terminator: str) -> int:
    """Return the index just past `terminator`, or the end of `code`.

    Example:
        ```python
        _skip_until("/* x */ y", 2, "*/")
        ```
    """
    found = code.find(terminator, i)
    return len(code) if found < 0 else found + len(terminator)


def _skip_quoted(code: str, i: int, quote: str) -> int:
    """Skip a string or char literal starting after its opening quote.

    Example:
        ```python
        _skip_quoted('"a\\\\"b" rest', 1, '"')
        ```
    """
    n = len(code)
    while i < n:
        ch = code[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote or ch == "\n":
            return i + 1
        i += 1
    return n


def _words(code: str) -> list[_Word]:
    """Tokenize identifiers while skipping comments, strings, chars and text blocks.

    Example:
        ```python
        [w.text for w in _words('class A { String s = "class B"; }')]
        ```
    """
    words: list[_Word] = []
    n = len(code)
    i = 0
    prev_significant = ""
    while i < n:
        ch = code[i]
        if code.startswith("//", i):
            i = _skip_until(code, i + 2, "\n")
            continue
        if code.startswith("/*", i):
            i = _skip_until(code, i + 2, "*/")
            continue
        if code.startswith('"""', i):
            i = _skip_until(code, i + 3, '"""')
            prev_significant = '"'
            continue
        if ch in {'"', "'"}:
            i = _skip_quoted(code, i + 1, ch)
            prev_significant = ch
            continue
        if ch.isalpha() or ch in {"_", "$"}:
            start = i
            while i < n and (code[i].isalnum() or code[i] in {"_", "$"}):
                i += 1
            words.append(_Word(start, i, code[start:i], prev_significant == "."))
            prev_significant = code[i - 1]
            continue
        if not ch.isspace():
            prev_significant = ch
        i += 1
    return words


def _declarations(words: list[_Word]) -> list[tuple[ClassDeclaration, int]]:
    """Find class declarations and the index of their name token.

    Example:
        ```python
        _declarations(_words("public class Main {}"))
        ```
    """
    found: list[tuple[ClassDeclaration, int]] = []
    for idx, word in enumerate(words):
        if word.text != "class" or word.after_dot or idx + 1 >= len(words):
            continue
        is_public = False
        back = idx - 1
        while back >= 0 and words[back].text in _MODIFIERS:
            if words[back].text == "public":
                is_public = True
            back -= 1
        found.append((ClassDeclaration(words[idx + 1].text, is_public), idx + 1))
    return found


def find_main_class(code: str) -> ClassDeclaration | None:
    """Return the public class (or the first class) declared in the code.

    Example:
        ```python
        decl = find_main_class("public class Main { }")
        ```
    """
    declarations = [decl for decl, _ in _declarations(_words(code))]
    if not declarations:
        return None
    for decl in declarations:
        if decl.is_public:
            return decl
    return declarations[0]


def _leading_header(lines: list[str]) -> tuple[list[str], int]:
    """Collect the imports and comments above the first statement.

    Returns the header lines and the index of the first body line. A block comment
    that closes with code on the same line belongs to the body.

    Example:
        ```python
        header, start = _leading_header(["// demo", "import java.util.*;", "int x = 1;"])
        ```
    """
    header: list[str] = []
    block_start: int | None = None
    block_header_len = 0
    for index, line in enumerate(lines):
        stripped = line.strip()
        if block_start is not None:
            closing = stripped.find("*/")
            if closing < 0:
                header.append(line)
                continue
            if stripped[closing + 2:].strip():
                del header[block_header_len:]
                return header, block_start
            header.append(line)
            block_start = None
            continue
        if not stripped:
            continue
        if stripped.startswith(("//", "import ")):
            header.append(stripped)
            continue
        if stripped.startswith("/*"):
            closing = stripped.find("*/", 2)
            if closing < 0:
                block_start, block_header_len = index, len(header)
                header.append(line)
                continue
            if not stripped[closing + 2:].strip():
                header.append(stripped)
                continue
        return header, index
    if block_start is not None:
        del header[block_header_len:]
        return header, block_start
    return header, len(lines)


def _wrap_in_class(code: str, class_name: str) -> str:
    """Wrap bare statements in a class with a `main` method, hoisting imports.

    Example:
        ```python
        _wrap_in_class('System.out.println("hi");', "Main_1")
        ```
    """
    lines = code.splitlines()
    imports, body_start = _leading_header(lines)
    body = "\n".join(lines[body_start:])
    header = "\n".join(imports)
    wrapped = (
        f"public class {class_name} {{\n"
        "    public static void main(String[] args) throws Exception {\n"
        f"{body}\n"
        "    }\n"
        "}\n"
    )
    return f"{header}\n{wrapped}" if header else wrapped


def rewrite_java_source(code: str, class_name: str) -> str:
    """Make the code compile as `<class_name>.java`.

    Code without a class declaration is wrapped in a generated class. Otherwise the
    main class is renamed to `class_name` together with every other reference to it.

    Example:
        ```python
        source = rewrite_java_source("public class Main { }", "Main_ab12")
        ```
    """
    words = _words(code)
    declarations = _declarations(words)
    if not declarations:
        return _wrap_in_class(code, class_name)

    target = next((decl for decl, _ in declarations if decl.is_public), declarations[0][0])
    if target.name == class_name:
        return code

    parts: list[str] = []
    cursor = 0
    for word in words:
        if word.text != target.name or word.after_dot:
            continue
        parts.append(code[cursor:word.start])
        parts.append(class_name)
        cursor = word.end
    parts.append(code[cursor:])
    return "".join(parts)

"""Light-weight reading of Go source files: imports, functions, interfaces."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

PathLike = Union[str, "os.PathLike[str]"]

_KEYWORDS = {
    "break", "case", "chan", "const", "continue", "default", "defer", "else",
    "fallthrough", "for", "func", "go", "goto", "if", "import", "interface",
    "map", "package", "range", "return", "select", "struct", "switch", "type", "var",
}
_SEMICOLON_KEYWORDS = {"break", "continue", "fallthrough", "return"}
_OPERATOR_CHARS = set("+-*/%&|^<>=!()[]{},;.:~")
_OPEN = {"(": ")", "[": "]", "{": "}"}
_TYPE_PARAM_SECOND = {",", "*", "[", "~"}


class GoSyntaxError(ValueError):
    """A Go source file could not be read."""


@dataclass(frozen=True)
class _Token:
    kind: str  # ident, string, char, number, op
    text: str
    line: int


@dataclass(frozen=True)
class _ImportSpec:
    name: Optional[str]
    path: str
    line: int


@dataclass(frozen=True)
class _SourceFile:
    package: str
    imports: tuple[_ImportSpec, ...]
    decls: tuple[tuple[_Token, ...], ...]
    tokens: tuple[_Token, ...]


def _needs_semicolon(tok: _Token) -> bool:
    if tok.kind == "ident":
        return tok.text not in _KEYWORDS or tok.text in _SEMICOLON_KEYWORDS
    if tok.kind in ("string", "char", "number"):
        return True
    return tok.text in (")", "]", "}", "++", "--")


def _scan_quoted(text: str, start: int, quote: str, line: int) -> int:
    """Return the index of the closing quote of a literal opened at ``start``."""
    j = start + 1
    while True:
        if j >= len(text) or text[j] == "\n":
            raise GoSyntaxError(f"line {line}: literal not terminated")
        if text[j] == "\\":
            j += 2
            continue
        if text[j] == quote:
            return j
        j += 1


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    line = 1
    i = 0
    n = len(text)

    def end_line() -> None:
        if tokens and _needs_semicolon(tokens[-1]):
            tokens.append(_Token("op", ";", line))

    while i < n:
        c = text[i]
        if c == "\n":
            end_line()
            line += 1
            i += 1
        elif c in " \t\r\f\ufeff":
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end < 0 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end < 0:
                raise GoSyntaxError(f"line {line}: comment not terminated")
            newlines = text.count("\n", i, end)
            if newlines:
                end_line()
                line += newlines
            i = end + 2
        elif c in "\"'":
            end = _scan_quoted(text, i, c, line)
            tokens.append(_Token("string" if c == '"' else "char", text[i : end + 1], line))
            i = end + 1
        elif c == "`":
            end = text.find("`", i + 1)
            if end < 0:
                raise GoSyntaxError(f"line {line}: raw string not terminated")
            tokens.append(_Token("string", text[i : end + 1], line))
            line += text.count("\n", i, end)
            i = end + 1
        elif c.isalpha() or c == "_":
            j = i + 1
            while j < n and (text[j].isalnum() or text[j] == "_"):
                j += 1
            tokens.append(_Token("ident", text[i:j], line))
            i = j
        elif c.isdigit() or (c == "." and i + 1 < n and text[i + 1].isdigit()):
            j = i + 1
            while j < n and (text[j].isalnum() or text[j] in "_."):
                j += 1
            tokens.append(_Token("number", text[i:j], line))
            i = j
        elif c in _OPERATOR_CHARS:
            for op in ("...", "++", "--"):
                if text.startswith(op, i):
                    break
            else:
                op = c
            tokens.append(_Token("op", op, line))
            i += len(op)
        else:
            raise GoSyntaxError(f"line {line}: illegal character {c!r}")
    end_line()
    return tokens


def _split(tokens: Sequence[_Token]) -> list[tuple[_Token, ...]]:
    """Split tokens at semicolons outside any brackets."""
    segments: list[tuple[_Token, ...]] = []
    current: list[_Token] = []
    stack: list[str] = []
    for tok in tokens:
        if tok.kind == "op":
            if tok.text in _OPEN:
                stack.append(_OPEN[tok.text])
            elif tok.text in (")", "]", "}"):
                if not stack or stack.pop() != tok.text:
                    raise GoSyntaxError(f"line {tok.line}: unexpected {tok.text!r}")
            elif tok.text == ";" and not stack:
                if current:
                    segments.append(tuple(current))
                    current = []
                continue
        current.append(tok)
    if stack:
        raise GoSyntaxError("unexpected end of file")
    if current:
        segments.append(tuple(current))
    return segments


def _matching(tokens: Sequence[_Token], open_index: int) -> int:
    depth = 0
    for idx in range(open_index, len(tokens)):
        tok = tokens[idx]
        if tok.kind != "op":
            continue
        if tok.text in _OPEN:
            depth += 1
        elif tok.text in (")", "]", "}"):
            depth -= 1
            if depth == 0:
                return idx
    raise GoSyntaxError("unbalanced brackets")


def _is_op(tok: _Token, text: str) -> bool:
    return tok.kind == "op" and tok.text == text


def _group_body(seg: Sequence[_Token]) -> list[tuple[_Token, ...]]:
    """Return the specs of a parenthesised declaration group."""
    if not _is_op(seg[-1], ")"):
        raise GoSyntaxError(f"line {seg[0].line}: declaration group not closed")
    return _split(seg[2:-1])


def _import_specs(seg: Sequence[_Token]) -> Iterable[_ImportSpec]:
    if len(seg) > 1 and _is_op(seg[1], "("):
        specs = _group_body(seg)
    else:
        specs = [tuple(seg[1:])]
    for spec in specs:
        if len(spec) == 1 and spec[0].kind == "string":
            name = None
        elif (
            len(spec) == 2
            and (spec[0].kind == "ident" or _is_op(spec[0], "."))
            and spec[1].kind == "string"
        ):
            name = spec[0].text
        else:
            line = spec[0].line if spec else seg[0].line
            raise GoSyntaxError(f"line {line}: malformed import")
        path_tok = spec[-1]
        yield _ImportSpec(name, path_tok.text.strip('"'), path_tok.line)


def _parse(path: PathLike) -> _SourceFile:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise GoSyntaxError(f"{os.fspath(path)}: invalid UTF-8") from exc
    tokens = _tokenize(text)
    segments = _split(tokens)
    if (
        not segments
        or segments[0][0].text != "package"
        or len(segments[0]) != 2
        or segments[0][1].kind != "ident"
    ):
        raise GoSyntaxError(f"{os.fspath(path)}: expected package clause")
    imports: list[_ImportSpec] = []
    rest = segments[1:]
    while rest and rest[0][0].kind == "ident" and rest[0][0].text == "import":
        imports.extend(_import_specs(rest[0]))
        rest = rest[1:]
    return _SourceFile(segments[0][1].text, tuple(imports), tuple(rest), tuple(tokens))


def get_imports(path: PathLike) -> list[str]:
    """Return the import paths of a Go file, in order."""
    return [spec.path for spec in _parse(path).imports]


def declared_functions(path: PathLike) -> list[str]:
    """Return the names of top-level functions without a receiver."""
    return [
        seg[1].text
        for seg in _parse(path).decls
        if len(seg) > 1 and seg[0].kind == "ident" and seg[0].text == "func" and seg[1].kind == "ident"
    ]


def _looks_like_type_params(spec: Sequence[_Token], open_index: int) -> bool:
    inner = spec[open_index + 1 : _matching(spec, open_index)]
    return (
        len(inner) >= 2
        and inner[0].kind == "ident"
        and (inner[1].kind == "ident" or (inner[1].kind == "op" and inner[1].text in _TYPE_PARAM_SECOND))
    )


def _interface_spec(spec: Sequence[_Token]) -> Optional[tuple[str, tuple[str, ...]]]:
    if not spec or spec[0].kind != "ident":
        return None
    name = spec[0].text
    i = 1
    if i < len(spec) and _is_op(spec[i], "[") and _looks_like_type_params(spec, i):
        i = _matching(spec, i) + 1
    if i < len(spec) and _is_op(spec[i], "="):
        i += 1
    if i + 1 < len(spec) and spec[i].kind == "ident" and spec[i].text == "interface" and _is_op(spec[i + 1], "{"):
        close = _matching(spec, i + 1)
        methods = tuple(
            element[0].text
            for element in _split(spec[i + 2 : close])
            if len(element) > 1 and element[0].kind == "ident" and _is_op(element[1], "(")
        )
        return name, methods
    return None


def interface_declarations(path: PathLike) -> list[tuple[str, tuple[str, ...]]]:
    """Return (name, method names) for each top-level interface type."""
    found: list[tuple[str, tuple[str, ...]]] = []
    for seg in _parse(path).decls:
        if len(seg) < 2 or seg[0].kind != "ident" or seg[0].text != "type":
            continue
        specs = _group_body(seg) if _is_op(seg[1], "(") else [tuple(seg[1:])]
        for spec in specs:
            decl = _interface_spec(spec)
            if decl is not None:
                found.append(decl)
    return found


def time_now_references(path: PathLike) -> list[int]:
    """Return the line numbers where the file refers to time.Now, under any import alias."""
    source = _parse(path)
    alias = next(
        (spec.name or "time" for spec in source.imports if spec.path == "time"),
        None,
    )
    if alias is None:
        return []
    tokens = source.tokens
    return [
        tok.line
        for idx, tok in enumerate(tokens[:-2])
        if tok.kind == "ident"
        and tok.text == alias
        and _is_op(tokens[idx + 1], ".")
        and tokens[idx + 2].kind == "ident"
        and tokens[idx + 2].text == "Now"
        and not (idx > 0 and _is_op(tokens[idx - 1], "."))
    ]


def dir_exists(path: PathLike) -> bool:
    """Tell whether ``path`` is an existing directory."""
    return Path(path).is_dir()


def _go_files(directory: PathLike) -> list[Path]:
    try:
        entries = sorted(Path(directory).iterdir(), key=lambda p: p.name)
    except OSError:
        return []
    return [
        entry
        for entry in entries
        if not entry.is_dir() and entry.name.endswith(".go") and not entry.name.endswith("_test.go")
    ]


def dir_imports_package(directory: PathLike, package: str) -> bool:
    """Tell whether any non-test Go file in ``directory`` imports ``package``."""
    for file in _go_files(directory):
        try:
            imports = get_imports(file)
        except (GoSyntaxError, OSError):
            continue
        if package in imports:
            return True
    return False


def dir_exports_func(directory: PathLike, func_name: str) -> bool:
    """Tell whether any non-test Go file in ``directory`` declares function ``func_name``."""
    for file in _go_files(directory):
        try:
            names = declared_functions(file)
        except (GoSyntaxError, OSError):
            continue
        if func_name in names:
            return True
    return False


def rel_path(root: PathLike, path: PathLike) -> str:
    """Return ``path`` relative to ``root``, or unchanged when that is not possible."""
    root_text = os.fspath(root)
    path_text = os.fspath(path)
    if root_text in ("", "."):
        return path_text
    if os.path.isabs(root_text) != os.path.isabs(path_text):
        return path_text
    try:
        return os.path.relpath(path_text, root_text)
    except ValueError:
        return path_text
"""
Export surface — structured view of a component's ``index.ts``.

Each component folder ships an ``index.ts`` that mixes production
exports (props interfaces, default props) with editor-only ones (the
``*Edit`` variant, ``EditableComponent`` descriptors).  Production gets
the same file minus the editor half.

Rather than rewriting the text with patterns, the file is split into
top-level statements, each statement is classified into an
:class:`ExportEntry`, and the editor-only entries are filtered out.
Kept statements are emitted byte-for-byte; only brace lists that lose
some of their names are re-rendered.

Statement splitting understands strings, template literals, comments and
bracket nesting, and ends a statement at ``;`` or at a newline that is
followed by a new top-level statement.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# Type names that only exist in the editor build.
EDITOR_TYPES = frozenset({"EditableComponent", "EditorialComponentProps", "WebsiteComponent"})

# Modules that only exist in the editor build.
EDITOR_MODULES = frozenset({"@/types/editorial"})

_STATEMENT_START = re.compile(
    r"(?:import|export|const|let|var|function|async|interface|type|class|enum|declare|abstract)\b"
    r"|//|/\*"
)

_IDENT = re.compile(r"[A-Za-z_$][\w$]*")


# ── Entries ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Specifier:
    """One name inside ``{ … }`` of an import or export list."""

    imported: str
    local: str
    is_type: bool = False

    def render(self) -> str:
        text = self.imported if self.imported == self.local else f"{self.imported} as {self.local}"
        return f"type {text}" if self.is_type else text


@dataclass
class ExportEntry:
    """A classified top-level statement.

    ``kind`` is one of ``import``, ``import-type``, ``export-const``,
    ``export-function``, ``export-interface``, ``export-type``,
    ``export-class``, ``export-enum``, ``export-list``, ``export-from``,
    ``export-default``, ``comment`` or ``other``.
    """

    kind: str
    statement: str
    names: tuple[str, ...] = ()
    source: str | None = None
    annotation: str | None = None
    default_name: str | None = None
    specifiers: tuple[Specifier, ...] = ()

    @property
    def name(self) -> str:
        return self.names[0] if self.names else ""


# ── Statement splitting ─────────────────────────────────────────


def _skip_string(src: str, i: int) -> int:
    """Index just past the string literal starting at ``i``."""
    quote = src[i]
    i += 1
    n = len(src)
    while i < n:
        ch = src[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if quote == "`" and src.startswith("${", i):
            depth = 1
            i += 2
            while i < n and depth:
                if src[i] in "\"'`":
                    i = _skip_string(src, i)
                    continue
                if src[i] == "{":
                    depth += 1
                elif src[i] == "}":
                    depth -= 1
                i += 1
            continue
        i += 1
    return n


def _line_end(src: str, i: int) -> int:
    """Extend ``i`` through the rest of its line when only whitespace follows."""
    j = i
    n = len(src)
    while j < n and src[j] in " \t\r":
        j += 1
    if j < n and src[j] == "\n":
        return j + 1
    if j >= n:
        return n
    return i


def _next_code(src: str, i: int) -> int:
    n = len(src)
    while i < n and src[i].isspace():
        i += 1
    return i


def split_statements(source: str) -> list[tuple[str, str]]:
    """Split ``source`` into ``(kind, text)`` segments.

    ``kind`` is ``"comment"`` for a free-standing top-level comment and
    ``"code"`` otherwise.  Joining every ``text`` reproduces ``source``.
    """
    segments: list[list] = []
    n = len(source)
    i = start = depth = 0
    has_code = False

    def close(kind: str, end: int) -> None:
        nonlocal start, has_code
        segments.append([kind, source[start:end]])
        start = end
        has_code = False

    while i < n:
        ch = source[i]

        if ch in "\"'`":
            i = _skip_string(source, i)
            has_code = True
            continue

        if source.startswith("//", i) or source.startswith("/*", i):
            if source[i + 1] == "/":
                j = source.find("\n", i)
                j = n if j == -1 else j
            else:
                j = source.find("*/", i + 2)
                j = n if j == -1 else j + 2
            if depth == 0 and not has_code:
                end = _line_end(source, j)
                close("comment", end)
                i = end
            else:
                i = j
            continue

        if ch in "([{":
            depth += 1
            has_code = True
        elif ch in ")]}":
            depth = max(0, depth - 1)
            has_code = True
        elif ch == ";" and depth == 0:
            end = _line_end(source, i + 1)
            if has_code or not segments:
                close("code", end)
            else:
                # stray ";" belongs to the statement before it
                segments[-1][1] += source[start:end]
                start = end
            i = end
            continue
        elif ch == "\n" and depth == 0 and has_code:
            k = _next_code(source, i + 1)
            if k >= n or _STATEMENT_START.match(source, k):
                close("code", i + 1)
                i += 1
                continue
        elif not ch.isspace():
            has_code = True
        i += 1

    if start < n:
        if has_code or not segments:
            close("code", n)
        else:
            segments[-1][1] += source[start:]

    return [(kind, text) for kind, text in segments]


# ── Classification ──────────────────────────────────────────────

_IMPORT = re.compile(
    r"^import\s+(?P<type>type\s+)?(?P<clause>.*?)\s*from\s*(?P<q>['\"])(?P<src>[^'\"]+)(?P=q)",
    re.S,
)
_SIDE_EFFECT_IMPORT = re.compile(r"^import\s*(?P<q>['\"])(?P<src>[^'\"]+)(?P=q)")
_EXPORT_FROM = re.compile(
    r"^export\s+(?:type\s+)?(?P<clause>\*(?:\s+as\s+[\w$]+)?|\{[^}]*\})\s*from\s*"
    r"(?P<q>['\"])(?P<src>[^'\"]+)(?P=q)",
    re.S,
)
_EXPORT_LIST = re.compile(r"^export\s+(?P<type>type\s+)?\{(?P<body>[^}]*)\}", re.S)
_EXPORT_DEFAULT = re.compile(
    r"^export\s+default\s+(?:(?:async\s+)?function\*?\s*(?P<fn>[\w$]+)?"
    r"|(?:abstract\s+)?class\s+(?P<cls>[\w$]+)|(?P<ident>[\w$]+))?"
)
_EXPORT_DECL = re.compile(
    r"^export\s+(?:declare\s+)?(?P<kw>const|let|var|async\s+function\*?|function\*?"
    r"|interface|type|abstract\s+class|class|enum)\s+(?P<name>[\w$]+)"
    r"(?:\s*:\s*(?P<ann>[^=;]+?)\s*=(?!>))?",
    re.S,
)

_DECL_KINDS = {
    "const": "export-const",
    "let": "export-const",
    "var": "export-const",
    "interface": "export-interface",
    "type": "export-type",
    "enum": "export-enum",
}


def _parse_specifiers(body: str) -> tuple[Specifier, ...]:
    specs = []
    for part in body.split(","):
        part = " ".join(part.split())
        if not part:
            continue
        is_type = part.startswith("type ")
        if is_type:
            part = part[5:]
        left, _, right = part.partition(" as ")
        left, right = left.strip(), right.strip()
        specs.append(Specifier(imported=left, local=right or left, is_type=is_type))
    return tuple(specs)


def _classify_import(stmt: str) -> ExportEntry | None:
    m = _IMPORT.match(stmt)
    if m:
        clause = m.group("clause").strip()
        default_name = None
        specifiers: tuple[Specifier, ...] = ()
        names: list[str] = []
        brace = clause.find("{")
        head = clause[:brace] if brace != -1 else clause
        head = head.strip().rstrip(",").strip()
        if head.startswith("*"):
            names.append(head.split()[-1])
        elif head:
            default_name = head
            names.append(head)
        if brace != -1:
            specifiers = _parse_specifiers(
                clause[brace + 1:clause.rfind("}")]
            )
            names.extend(s.local for s in specifiers)
        return ExportEntry(
            kind="import-type" if m.group("type") else "import",
            statement=stmt,
            names=tuple(names),
            source=m.group("src"),
            default_name=default_name,
            specifiers=specifiers,
        )
    m = _SIDE_EFFECT_IMPORT.match(stmt)
    if m:
        return ExportEntry(kind="import", statement=stmt, source=m.group("src"))
    return None


def _classify_export(stmt: str) -> ExportEntry | None:
    m = _EXPORT_FROM.match(stmt)
    if m:
        clause = m.group("clause")
        specifiers: tuple[Specifier, ...] = ()
        if clause.startswith("{"):
            specifiers = _parse_specifiers(clause[1:-1])
        names = tuple(s.local for s in specifiers) or (clause,)
        return ExportEntry(
            kind="export-from", statement=stmt, names=names,
            source=m.group("src"), specifiers=specifiers,
        )
    m = _EXPORT_LIST.match(stmt)
    if m:
        specifiers = _parse_specifiers(m.group("body"))
        return ExportEntry(
            kind="export-list", statement=stmt,
            names=tuple(s.local for s in specifiers), specifiers=specifiers,
        )
    m = _EXPORT_DEFAULT.match(stmt)
    if m:
        name = m.group("fn") or m.group("cls") or m.group("ident") or ""
        return ExportEntry(
            kind="export-default", statement=stmt, names=(name,) if name else ()
        )
    m = _EXPORT_DECL.match(stmt)
    if m:
        kw = " ".join(m.group("kw").split())
        if "function" in kw:
            kind = "export-function"
        elif "class" in kw:
            kind = "export-class"
        else:
            kind = _DECL_KINDS[kw]
        ann = m.group("ann")
        return ExportEntry(
            kind=kind, statement=stmt, names=(m.group("name"),),
            annotation=" ".join(ann.split()) if ann else None,
        )
    return None


def classify_statement(text: str) -> ExportEntry:
    stmt = text.strip()
    if stmt.startswith("import"):
        entry = _classify_import(stmt)
        if entry:
            entry.statement = text
            return entry
    elif stmt.startswith("export"):
        entry = _classify_export(stmt)
        if entry:
            entry.statement = text
            return entry
    return ExportEntry(kind="other", statement=text)


def parse_export_surface(source: str) -> list[ExportEntry]:
    """Classify every top-level statement of a TypeScript module."""
    entries = []
    for kind, text in split_statements(source):
        if kind == "comment":
            entries.append(ExportEntry(kind="comment", statement=text))
        else:
            entries.append(classify_statement(text))
    return entries


# ── Editor-only filtering ───────────────────────────────────────


def is_editor_name(name: str) -> bool:
    return name.endswith("Edit") or name in EDITOR_TYPES


def _is_editor_module(source: str | None) -> bool:
    if not source:
        return False
    if source in EDITOR_MODULES:
        return True
    if source.startswith("."):
        return source.rsplit("/", 1)[-1].lower().endswith("edit")
    return False


def _annotation_is_editor(annotation: str | None) -> bool:
    if not annotation:
        return False
    return any(tok in EDITOR_TYPES for tok in _IDENT.findall(annotation))


def is_editor_only(entry: ExportEntry) -> bool:
    """True when the whole statement exists only for the editor."""
    if entry.kind in ("import", "import-type"):
        return _is_editor_module(entry.source) or (
            bool(entry.names) and all(is_editor_name(n) for n in entry.names)
        )
    if entry.kind == "export-from":
        return _is_editor_module(entry.source)
    if entry.kind == "export-const":
        return (
            is_editor_name(entry.name)
            or _annotation_is_editor(entry.annotation)
            or entry.name.endswith("Component")
        )
    if entry.kind in ("export-function", "export-interface", "export-type",
                      "export-class", "export-enum", "export-default"):
        return bool(entry.name) and is_editor_name(entry.name)
    return False


@dataclass
class StripResult:
    text: str
    removed: list[str] = field(default_factory=list)


def _rewrite_braces(statement: str, specifiers: list[Specifier]) -> str:
    open_at = statement.find("{")
    close_at = statement.find("}", open_at)
    inner = ", ".join(s.render() for s in specifiers)
    return f"{statement[:open_at]}{{ {inner} }}{statement[close_at + 1:]}"


def _drop_default(statement: str, default_name: str) -> str:
    return re.sub(
        rf"(\bimport\s+(?:type\s+)?){re.escape(default_name)}\s*,\s*", r"\1", statement, count=1
    )


def strip_editor_exports(source: str) -> StripResult:
    """Remove editor-only imports and exports from a component index.

    Names bound by a dropped import are also dropped from later export
    lists, so ``import XEdit from "./xedit"`` takes ``export { XEdit }``
    with it whatever the capitalization.
    """
    kept: list[str] = []
    removed: list[str] = []
    dropped_locals: set[str] = set()

    def editor(name: str) -> bool:
        return is_editor_name(name) or name in dropped_locals

    for entry in parse_export_surface(source):
        if is_editor_only(entry):
            removed.extend(entry.names or (entry.source or "",))
            if entry.kind in ("import", "import-type"):
                dropped_locals.update(entry.names)
            continue

        statement = entry.statement
        if entry.specifiers and entry.kind in ("import", "import-type", "export-list", "export-from"):
            keep = [s for s in entry.specifiers if not (editor(s.local) or editor(s.imported))]
            gone = [s.local for s in entry.specifiers if s not in keep]
            if gone:
                removed.extend(gone)
                if entry.kind in ("import", "import-type"):
                    dropped_locals.update(gone)
                if not keep and not entry.default_name:
                    continue
                if keep:
                    statement = _rewrite_braces(statement, keep)
                else:
                    statement = re.sub(r",?\s*\{[^}]*\}", "", statement, count=1)

        if entry.default_name and editor(entry.default_name):
            removed.append(entry.default_name)
            dropped_locals.add(entry.default_name)
            if entry.specifiers and "{" in statement:
                statement = _drop_default(statement, entry.default_name)
            else:
                continue

        kept.append(statement)

    text = re.sub(r"\n{3,}", "\n\n", "".join(kept)).lstrip("\n")
    if text and not text.endswith("\n"):
        text += "\n"
    return StripResult(text=text, removed=removed)

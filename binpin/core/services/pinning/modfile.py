"""
go.mod document model — parse, edit and re-print module files.

The model keeps the file's statements in order together with the
comments attached to them, so that editing the fields binpin manages
(the require and replace directives) leaves everything else alone.

Statements:
    ``Line``          one directive, e.g. ``require example.com/x v1.2.3``
    ``Block``         a parenthesised group, e.g. ``replace ( ... )``
    ``CommentBlock``  free-standing comment lines

Each ``Line``/``Block`` carries the comment lines directly above it
(``before``) and the comment on the same line (``suffix``). Printing
is canonical: top-level statements are separated by one blank line and
block members are indented with a tab, so ``format(parse(format(x)))``
equals ``format(x)``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from binpin.core.errors import UnparsableManifest
from binpin.core.models.package import ModuleVersion

logger = logging.getLogger(__name__)

_KNOWN_VERBS = {
    "module", "go", "toolchain", "godebug",
    "require", "exclude", "replace", "retract",
    "tool", "ignore",
}

# Verbs that may appear as a parenthesised block.
_BLOCK_VERBS = {"require", "exclude", "replace", "retract", "godebug", "tool", "ignore"}

_GO_VERSION_RE = re.compile(r"^[0-9]+(\.[0-9]+)*([a-z]+[0-9]*)?$")

# Characters that force a path to be quoted when printed.
_QUOTE_CHARS = set(' \t\r\n"`()')


# ── Syntax ──────────────────────────────────────────────────────


@dataclass
class Line:
    tokens: list[str]
    before: list[str] = field(default_factory=list)
    suffix: str = ""
    lineno: int = 0


@dataclass
class Block:
    verb: str
    lines: list[Line] = field(default_factory=list)
    before: list[str] = field(default_factory=list)
    suffix: str = ""
    after: list[str] = field(default_factory=list)
    lineno: int = 0


@dataclass
class CommentBlock:
    comments: list[str] = field(default_factory=list)


Stmt = Line | Block | CommentBlock


@dataclass
class Require:
    mod: ModuleVersion
    indirect: bool
    line: Line


@dataclass
class Replace:
    old: ModuleVersion
    new: ModuleVersion
    line: Line


# ── Tokenizer ───────────────────────────────────────────────────


def _tokenize(text: str, filename: str, lineno: int) -> tuple[list[str], str]:
    """Split one physical line into tokens and its trailing comment."""
    tokens: list[str] = []
    i, n = 0, len(text)
    while i < n:
        c = text[i]
        if c in " \t\r\ufeff":
            i += 1
            continue
        if text.startswith("//", i):
            return tokens, text[i:].rstrip()
        if c == '"':
            j = i + 1
            while j < n and text[j] != '"':
                j += 2 if text[j] == "\\" else 1
            if j >= n:
                raise UnparsableManifest(filename, "unterminated quoted string", lineno)
            tokens.append(text[i:j + 1])
            i = j + 1
            continue
        if c == "`":
            j = text.find("`", i + 1)
            if j < 0:
                raise UnparsableManifest(filename, "unterminated raw string", lineno)
            tokens.append(text[i:j + 1])
            i = j + 1
            continue
        if text.startswith("=>", i):
            tokens.append("=>")
            i += 2
            continue
        if c in "()":
            tokens.append(c)
            i += 1
            continue
        j = i
        while j < n and text[j] not in ' \t\r()"`' and not text.startswith("//", j) \
                and not text.startswith("=>", j):
            j += 1
        tokens.append(text[i:j])
        i = j
    return tokens, ""


def unquote(token: str) -> str:
    """Return the value of a possibly quoted token."""
    if token.startswith("`"):
        return token[1:-1]
    if token.startswith('"'):
        try:
            return json.loads(token)
        except ValueError as e:
            raise ValueError(f"invalid quoted string {token}: {e}") from e
    return token


def auto_quote(value: str) -> str:
    """Quote ``value`` only when it could not be read back bare."""
    if not value or "//" in value or "=>" in value or _QUOTE_CHARS & set(value):
        return json.dumps(value)
    return value


def escape_module_path(path: str) -> str:
    """Escape a module path for use as a case-insensitive cache path.

    Upper-case letters become ``!`` followed by the lower-case letter.
    """
    return "".join(f"!{c.lower()}" if "A" <= c <= "Z" else c for c in path)


def _is_indirect(line: Line) -> bool:
    fields = line.suffix[2:].split()
    return fields == ["indirect"] or (len(fields) > 1 and fields[0] == "indirect;")


# ── Document ────────────────────────────────────────────────────


class ModFile:
    """A parsed go.mod file with formatting-preserving edits."""

    def __init__(self, filename: str, stmts: list[Stmt] | None = None):
        self.filename = filename
        self.stmts: list[Stmt] = stmts or []

    # ── Views ──

    def _entries(self, verb: str) -> list[tuple[Line, list[str]]]:
        """All lines for ``verb`` with the verb stripped from their tokens."""
        found: list[tuple[Line, list[str]]] = []
        for stmt in self.stmts:
            if isinstance(stmt, Line) and stmt.tokens[0] == verb:
                found.append((stmt, stmt.tokens[1:]))
            elif isinstance(stmt, Block) and stmt.verb == verb:
                found.extend((line, line.tokens) for line in stmt.lines)
        return found

    @property
    def module_line(self) -> Line | None:
        for stmt in self.stmts:
            if isinstance(stmt, Line) and stmt.tokens[0] == "module":
                return stmt
        return None

    @property
    def requires(self) -> list[Require]:
        return [
            Require(
                mod=ModuleVersion(path=unquote(args[0]), version=args[1]),
                indirect=_is_indirect(line),
                line=line,
            )
            for line, args in self._entries("require")
        ]

    @property
    def replaces(self) -> list[Replace]:
        result = []
        for line, args in self._entries("replace"):
            arrow = args.index("=>")
            old, new = args[:arrow], args[arrow + 1:]
            result.append(Replace(
                old=ModuleVersion(path=unquote(old[0]), version=old[1] if len(old) > 1 else ""),
                new=ModuleVersion(path=unquote(new[0]), version=new[1] if len(new) > 1 else ""),
                line=line,
            ))
        return result

    def comments(self) -> list[str]:
        """Every comment in the file, in order."""
        found: list[str] = []
        for stmt in self.stmts:
            if isinstance(stmt, CommentBlock):
                found.extend(stmt.comments)
                continue
            found.extend(stmt.before)
            if stmt.suffix:
                found.append(stmt.suffix)
            if isinstance(stmt, Block):
                for line in stmt.lines:
                    found.extend(line.before)
                    if line.suffix:
                        found.append(line.suffix)
                found.extend(stmt.after)
        return found

    # ── Edits ──

    def _take(self, verb: str) -> tuple[int, list[str]]:
        """Remove every ``verb`` statement.

        Returns the index of the first removed statement (or the end of
        the file) and the comments that were attached above it.
        """
        index: int | None = None
        before: list[str] = []
        kept: list[Stmt] = []
        for stmt in self.stmts:
            is_verb = (isinstance(stmt, Line) and stmt.tokens[0] == verb) or (
                isinstance(stmt, Block) and stmt.verb == verb
            )
            if not is_verb:
                kept.append(stmt)
            elif index is None:
                index, before = len(kept), list(stmt.before)
        self.stmts = kept
        return (len(kept) if index is None else index), before

    def drop_requires(self) -> None:
        """Remove every require directive."""
        self._take("require")

    def set_require(self, path: str, version: str, suffix: str = "") -> None:
        """Replace all require directives with a single one."""
        index, before = self._take("require")
        tokens = ["require", auto_quote(path), version]
        self.stmts.insert(index, Line(tokens=tokens, before=before, suffix=suffix))

    def set_replaces(self, replaces: list[tuple[ModuleVersion, ModuleVersion]]) -> None:
        """Replace all replace directives with the given (old, new) pairs."""
        index, before = self._take("replace")
        if not replaces:
            return

        lines = []
        for old, new in replaces:
            tokens = [auto_quote(old.path)]
            if old.version:
                tokens.append(old.version)
            tokens += ["=>", auto_quote(new.path)]
            if new.version:
                tokens.append(new.version)
            lines.append(tokens)

        if len(lines) == 1:
            stmt: Stmt = Line(tokens=["replace", *lines[0]], before=before)
        else:
            stmt = Block(verb="replace", lines=[Line(tokens=t) for t in lines], before=before)
        self.stmts.insert(index, stmt)

    # ── Printing ──

    def format(self) -> str:
        out: list[str] = []
        for i, stmt in enumerate(self.stmts):
            if i > 0:
                out.append("")
            if isinstance(stmt, CommentBlock):
                out.extend(stmt.comments)
                continue
            out.extend(stmt.before)
            if isinstance(stmt, Line):
                out.append(_join(stmt.tokens, stmt.suffix))
                continue
            out.append(_join([stmt.verb, "("], stmt.suffix))
            for line in stmt.lines:
                out.extend("\t" + c for c in line.before)
                out.append("\t" + _join(line.tokens, line.suffix))
            out.extend("\t" + c for c in stmt.after)
            out.append(")")
        return "\n".join(out) + "\n" if out else ""


def _join(tokens: list[str], suffix: str) -> str:
    text = " ".join(tokens)
    return f"{text} {suffix}" if suffix else text


# ── Parsing ─────────────────────────────────────────────────────


def parse(filename: str, text: str, lax: bool = False) -> ModFile:
    """Parse go.mod ``text``; ``filename`` is used in error messages.

    With ``lax`` set, directives this parser does not know (newer Go
    releases keep adding them) are kept as-is instead of rejected. Use it
    for module files binpin only reads, such as an upstream module's own
    go.mod.
    """
    stmts: list[Stmt] = []
    pending: list[str] = []
    block: Block | None = None

    for lineno, raw in enumerate(text.splitlines(), start=1):
        tokens, comment = _tokenize(raw, filename, lineno)

        if not tokens:
            if comment:
                pending.append(comment)
            elif block is None and pending:
                stmts.append(CommentBlock(comments=pending))
                pending = []
            continue

        if block is not None:
            if tokens == [")"]:
                block.after = pending + ([comment] if comment else [])
                pending = []
                stmts.append(block)
                block = None
                continue
            if "(" in tokens or ")" in tokens:
                raise UnparsableManifest(filename, "unexpected parenthesis inside block", lineno)
            line = Line(tokens=tokens, before=pending, suffix=comment, lineno=lineno)
            _check_args(filename, block.verb, line.tokens, lineno)
            block.lines.append(line)
            pending = []
            continue

        verb = tokens[0]
        known = verb in _KNOWN_VERBS
        if not known and not lax:
            raise UnparsableManifest(filename, f"unknown directive: {verb}", lineno)

        if tokens[1:] in (["("], ["(", ")"]):
            if known and verb not in _BLOCK_VERBS:
                raise UnparsableManifest(filename, f"{verb} cannot be a block", lineno)
            block = Block(verb=verb, before=pending, suffix=comment, lineno=lineno)
            pending = []
            if tokens[-1] == ")":
                stmts.append(block)
                block = None
            continue

        if "(" in tokens or ")" in tokens:
            raise UnparsableManifest(filename, "unexpected parenthesis", lineno)
        _check_args(filename, verb, tokens[1:], lineno)
        stmts.append(Line(tokens=tokens, before=pending, suffix=comment, lineno=lineno))
        pending = []

    if block is not None:
        raise UnparsableManifest(filename, f"unterminated {block.verb} block", block.lineno)
    if pending:
        stmts.append(CommentBlock(comments=pending))

    modules = [s for s in stmts if isinstance(s, Line) and s.tokens[0] == "module"]
    if len(modules) > 1:
        raise UnparsableManifest(filename, "repeated module statement", modules[1].lineno)
    return ModFile(filename, stmts)


def _check_args(filename: str, verb: str, args: list[str], lineno: int) -> None:
    def fail(usage: str) -> None:
        raise UnparsableManifest(filename, f"usage: {usage}", lineno)

    try:
        for arg in args:
            if arg != "=>":
                unquote(arg)
    except ValueError as e:
        raise UnparsableManifest(filename, str(e), lineno) from e

    if verb == "module" and len(args) != 1:
        fail("module module/path")
    elif verb == "go" and (len(args) != 1 or not _GO_VERSION_RE.match(args[0])):
        fail("go 1.23")
    elif verb == "toolchain" and len(args) != 1:
        fail("toolchain go1.23.0")
    elif verb in ("require", "exclude") and (len(args) != 2 or "=>" in args):
        fail(f"{verb} module/path v1.2.3")
    elif verb == "replace":
        arrow = args.index("=>") if "=>" in args else -1
        if arrow not in (1, 2) or len(args) - arrow - 1 not in (1, 2):
            fail("replace module/path [v1.2.3] => other/module v1.4\n"
                 "\t or replace module/path [v1.2.3] => ../local/directory")
    elif verb in ("tool", "ignore") and len(args) != 1:
        fail(f"{verb} path")
    elif verb in ("retract", "godebug") and not args:
        fail(f"{verb} ...")


def parse_modfile(path: str | Path, text: str | None = None, lax: bool = False) -> ModFile:
    """Parse a module file from disk, or from ``text`` when given."""
    filename = str(path)
    if text is None:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise UnparsableManifest(filename, f"read: {e}") from e
    return parse(filename, text, lax=lax)


def indirect_modules(path: str | Path) -> list[ModuleVersion]:
    """All indirectly required modules recorded in a module file."""
    return [r.mod for r in parse_modfile(path, lax=True).requires if r.indirect]

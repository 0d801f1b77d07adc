"""
Statement classification for the control-flow builder.

Every logical line of a procedure body is turned into a :class:`Statement`
event by :func:`classify`.  Patterns are tried in a fixed priority order and
the first match wins; anything unrecognised comes back as a plain
``"statement"`` event, which the builder then inspects for call sites.

The patterns are deliberately shallow: they look at statement shape, not at
a full VBA grammar.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..pipeline.keywords import VBA_KEYWORDS, is_reserved

_I = re.IGNORECASE
_IDENT = r"[^\W\d]\w*"

# ── Conditionals ────────────────────────────────────────────────────────────
_IF_INLINE_RE = re.compile(r"^If\s+(.+?)\s+Then\s+(\S.*)$", _I)
_IF_BLOCK_RE = re.compile(r"^If\s+(.+?)\s+Then$", _I)
_ELSEIF_RE = re.compile(r"^ElseIf\s+(.+?)\s+Then$", _I)
_ELSE_RE = re.compile(r"^Else:?$", _I)
_END_IF_RE = re.compile(r"^End\s*If$", _I)
_INLINE_ELSE_RE = re.compile(r"^(.*?\S)\s+Else\s+(\S.*)$", _I)

# ── Loops ───────────────────────────────────────────────────────────────────
_DO_RE = re.compile(r"^Do(?:\s+(While|Until)\s+(.+))?$", _I)
_LOOP_RE = re.compile(r"^Loop(?:\s+(While|Until)\s+(.+))?$", _I)
_WHILE_RE = re.compile(r"^While\s+(.+)$", _I)
_WEND_RE = re.compile(r"^Wend$", _I)
_FOR_RE = re.compile(r"^For\s+(.+)$", _I)
_NEXT_RE = re.compile(r"^Next(?:\s+(.+))?$", _I)

# ── Multi-way branch / With ─────────────────────────────────────────────────
_SELECT_RE = re.compile(r"^Select\s+Case\s+(.+)$", _I)
_CASE_RE = re.compile(r"^Case\s+(.+)$", _I)
_END_SELECT_RE = re.compile(r"^End\s+Select$", _I)
_WITH_RE = re.compile(r"^With\s+(.+)$", _I)
_END_WITH_RE = re.compile(r"^End\s+With$", _I)

# ── Jumps / labels / exits ──────────────────────────────────────────────────
_GOTO_RE = re.compile(rf"^GoTo\s+({_IDENT}|\d+)$", _I)
# "Name:" or "Name: stmt"; ":=" is a named argument, not a label
_LABEL_RE = re.compile(rf"^({_IDENT}):(?!=)\s*(.*)$")
# Legacy line numbers: "100", "100:" or "100 stmt"
_LINE_NUMBER_RE = re.compile(r"^(\d+):?(?:\s+(.*))?$")
_EXIT_LOOP_RE = re.compile(r"^Exit\s+(Do|For)$", _I)
_EXIT_RE = re.compile(
    r"^(?:Exit\s+(?:Sub|Function|Property)|End|Return|Err\.Raise\b.*|Error\s+\S.*)$",
    _I,
)

# ── Call shapes ─────────────────────────────────────────────────────────────
_CALL_KEYWORD_RE = re.compile(rf"^Call\s+(?:({_IDENT})\.)?({_IDENT})", _I)
_QUALIFIED_RE = re.compile(rf"(?<![\w.])({_IDENT})\.({_IDENT})\s*\(")
_QUALIFIED_STMT_RE = re.compile(rf"^({_IDENT})\.({_IDENT})(?:\s+(.*))?$")
_BARE_RE = re.compile(rf"(?<![\w.])({_IDENT})\s*\(")
_STMT_CALL_RE = re.compile(rf"^({_IDENT})(?:\s+(.*))?$")
_STRING_RE = re.compile(r'"[^"]*"')

# Lines that only declare storage never contain calls worth reporting.
_DECLARATION_RE = re.compile(
    r"^(?:Dim|ReDim|Static|Const|Private|Public|Global)\b", _I
)
_DECLARED_NAME_RE = re.compile(rf"^(?:Preserve\s+)?(?:WithEvents\s+)?({_IDENT})", _I)
_PARAM_NAME_RE = re.compile(
    rf"^(?:Optional\s+)?(?:(?:ByVal|ByRef)\s+)?(?:ParamArray\s+)?({_IDENT})", _I
)


@dataclass
class Statement:
    """One classified line-event."""

    kind: str
    text: str
    parts: Dict[str, object] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"Statement(kind={self.kind!r}, text={self.text!r})"


@dataclass
class CallCandidate:
    """A call shape found in a statement, before symbol resolution."""

    name: str
    qualifier: Optional[str]
    form: str   # call | qualified | bare | statement


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify(text: str) -> Statement:
    """Classify one logical line (already stripped of comments)."""
    text = text.strip()

    label = _split_label(text)
    if label is not None:
        name, rest = label
        return Statement("label", text, {
            "label": name,
            "rest": classify(rest) if rest else None,
        })

    # Match on a copy with string contents blanked out, slice the original.
    masked = _mask_strings(text)
    m = _IF_INLINE_RE.match(masked)
    if m and not _IF_BLOCK_RE.match(masked):
        rest = text[m.start(2):]
        else_m = _INLINE_ELSE_RE.match(masked[m.start(2):])
        if else_m:
            then_text, else_text = rest[:else_m.end(1)], rest[else_m.start(2):]
        else:
            then_text, else_text = rest, None
        return Statement("if_inline", text, {
            "cond": text[m.start(1):m.end(1)],
            "then": _classify_simple(then_text),
            "else": _classify_simple(else_text) if else_text else None,
        })

    for kind, regex in (
        ("if", _IF_BLOCK_RE),
        ("elseif", _ELSEIF_RE),
    ):
        m = regex.match(masked)
        if m:
            return Statement(kind, text, {"cond": text[m.start(1):m.end(1)]})
    if _ELSE_RE.match(text):
        return Statement("else", text)
    if _END_IF_RE.match(text):
        return Statement("end_if", text)

    m = _DO_RE.match(text)
    if m:
        return Statement("do", text, {"keyword": _title(m.group(1)), "cond": m.group(2)})
    m = _LOOP_RE.match(text)
    if m:
        return Statement("loop", text, {"keyword": _title(m.group(1)), "cond": m.group(2)})
    m = _WHILE_RE.match(text)
    if m:
        return Statement("while", text, {"cond": m.group(1)})
    if _WEND_RE.match(text):
        return Statement("wend", text)

    m = _FOR_RE.match(text)
    if m:
        return Statement("for", text, {"header": m.group(1)})
    m = _NEXT_RE.match(text)
    if m:
        names = [v.strip() for v in (m.group(1) or "").split(",") if v.strip()]
        return Statement("next", text, {"vars": names})

    m = _SELECT_RE.match(text)
    if m:
        return Statement("select", text, {"expr": m.group(1)})
    m = _CASE_RE.match(text)
    if m:
        label = m.group(1).strip()
        if label.lower() == "else":
            label = "Else"
        return Statement("case", text, {"label": label})
    if _END_SELECT_RE.match(text):
        return Statement("end_select", text)

    m = _WITH_RE.match(text)
    if m:
        return Statement("with", text, {"target": m.group(1)})
    if _END_WITH_RE.match(text):
        return Statement("end_with", text)

    return _classify_simple(text)


def _classify_simple(text: str) -> Statement:
    """Classify statements that may also appear after a one-line ``Then``."""
    text = text.strip()
    m = _GOTO_RE.match(text)
    if m:
        return Statement("goto", text, {"label": m.group(1)})
    m = _EXIT_LOOP_RE.match(text)
    if m:
        return Statement("exit_loop", text, {"loop": _title(m.group(1))})
    if _EXIT_RE.match(text):
        return Statement("exit", text)
    return Statement("statement", text)


def _split_label(text: str) -> Optional[Tuple[str, str]]:
    """
    Split a leading line label off *text*: ``(name, rest)``, or ``None`` when
    the line does not start with one.  *rest* is empty for a bare label.
    """
    m = _LINE_NUMBER_RE.match(text)
    if m:
        return m.group(1), (m.group(2) or "").strip()
    m = _LABEL_RE.match(text)
    if m and m.group(1).lower() not in VBA_KEYWORDS:
        return m.group(1), m.group(2).strip()
    return None


def _mask_strings(text: str) -> str:
    """Blank string-literal contents, keeping every offset of *text*."""
    return _STRING_RE.sub(lambda m: '"' + " " * (len(m.group()) - 2) + '"', text)


def _title(word: Optional[str]) -> Optional[str]:
    return word.capitalize() if word else None


# ---------------------------------------------------------------------------
# Call-site shapes
# ---------------------------------------------------------------------------


def find_call_candidates(text: str, local_names: frozenset[str] = frozenset()) -> List[CallCandidate]:
    """
    Return the call shapes present in *text*, in order of appearance.

    Three independent patterns are applied: the explicit ``Call`` keyword,
    ``Module.Proc(`` and bare ``Name(``.  A fourth, statement-form pattern
    (``Proc arg1, arg2``) is reported too; the builder keeps it only when
    the name resolves, since the shape alone is ambiguous.

    *local_names* (lower-cased parameters and ``Dim``-declared variables)
    suppresses array indexing such as ``total = values(i)``.
    """
    code = _STRING_RE.sub('""', text.strip())
    if _DECLARATION_RE.match(code):
        return []

    found: List[CallCandidate] = []
    seen: set[Tuple[Optional[str], str]] = set()

    def _add(name: str, qualifier: Optional[str], form: str) -> None:
        key = (qualifier.lower() if qualifier else None, name.lower())
        if key not in seen:
            seen.add(key)
            found.append(CallCandidate(name=name, qualifier=qualifier, form=form))

    m = _CALL_KEYWORD_RE.match(code)
    if m:
        _add(m.group(2), m.group(1), "call")
        code_tail = code[m.end():]
    else:
        code_tail = code

    for m in _QUALIFIED_RE.finditer(code_tail):
        _add(m.group(2), m.group(1), "qualified")

    assign_target = _assignment_target(code)
    for m in _BARE_RE.finditer(code_tail):
        name = m.group(1)
        if is_reserved(name) or name.lower() in local_names:
            continue
        if assign_target is not None and m.start() == 0 and name.lower() == assign_target:
            continue
        _add(name, None, "bare")

    if not found:
        m = _QUALIFIED_STMT_RE.match(code)
        if m and not (m.group(3) or "").lstrip().startswith("="):
            _add(m.group(2), m.group(1), "statement")
        m = _STMT_CALL_RE.match(code)
        if m and not is_reserved(m.group(1)) and not (m.group(2) or "").lstrip().startswith("="):
            _add(m.group(1), None, "statement")

    return found


def _assignment_target(code: str) -> Optional[str]:
    """``arr(i) = 1`` -> ``"arr"``: the indexed name on the left of ``=``."""
    m = re.match(rf"^(?:(?:Let|Set)\s+)?({_IDENT})\s*\(", code, _I)
    if not m:
        return None
    depth = 0
    for pos in range(m.end() - 1, len(code)):
        ch = code[pos]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                if code[pos + 1:].lstrip().startswith("="):
                    return m.group(1).lower()
                return None
    return None


# ---------------------------------------------------------------------------
# Local names
# ---------------------------------------------------------------------------


def declared_locals(text: str) -> List[str]:
    """Variable names declared by a ``Dim`` / ``ReDim`` / ``Static`` line."""
    m = re.match(r"^(?:Dim|ReDim|Static|Const)\s+(.*)$", text.strip(), _I)
    if not m:
        return []
    names = []
    for part in _split_top_level(m.group(1)):
        nm = _DECLARED_NAME_RE.match(part.strip())
        if nm:
            names.append(nm.group(1))
    return names


def parameter_names(header: str) -> List[str]:
    """Parameter names from a procedure header line."""
    start = header.find("(")
    if start < 0:
        return []
    depth = 0
    for end in range(start, len(header)):
        if header[end] == "(":
            depth += 1
        elif header[end] == ")":
            depth -= 1
            if depth == 0:
                break
    else:
        end = len(header)
    names = []
    for part in _split_top_level(header[start + 1:end]):
        nm = _PARAM_NAME_RE.match(part.strip())
        if nm:
            names.append(nm.group(1))
    return names


def _split_top_level(text: str) -> List[str]:
    """Split on commas that are not inside parentheses or string literals."""
    out: List[str] = []
    cur: List[str] = []
    depth = 0
    in_string = False
    for ch in text:
        if ch == '"':
            in_string = not in_string
        elif not in_string and ch == "(":
            depth += 1
        elif not in_string and ch == ")":
            depth = max(0, depth - 1)
        elif not in_string and ch == "," and depth == 0:
            out.append("".join(cur))
            cur = []
            continue
        cur.append(ch)
    if cur:
        out.append("".join(cur))
    return [p for p in out if p.strip()]

"""
VBA keyword, built-in and declaration pattern tables.

Used by :class:`~vba_flow.pipeline.symbol_table.SymbolTableBuilder` and
:class:`~vba_flow.passes.procedure_block.ProcedureBlockPass` to recognise
procedure headers / footers, and by the control-flow builder to keep language
keywords and VBA runtime functions from being reported as call sites.
"""
from __future__ import annotations

import re

# ``[Public|Private|Friend] [Static] Sub|Function|Property Get/Let/Set Name(``
PROC_HEADER_RE = re.compile(
    r"^\s*(?:(?:Public|Private|Friend)\s+)?(?:Static\s+)?"
    r"(Sub|Function|Property\s+(?:Get|Let|Set))\s+"
    r"([^\W\d]\w*)\s*\(",
    re.IGNORECASE,
)

PROC_FOOTER_RE = re.compile(r"^\s*End\s+(Sub|Function|Property)\s*$", re.IGNORECASE)

# ``Attribute VB_Name = "Module1"``
MODULE_NAME_RE = re.compile(
    r'^\s*Attribute\s+VB_Name\s*=\s*"([^"]+)"', re.IGNORECASE
)

# Extensions written by the VBE "Export File…" command.
MODULE_EXTENSIONS: tuple[str, ...] = (".bas", ".cls", ".frm")


def normalise_kind(raw: str) -> str:
    """``property   get`` -> ``Property Get``; ``SUB`` -> ``Sub``."""
    return " ".join(word.capitalize() for word in raw.split())


# Statement keywords and declaration words that may be followed by ``(``
# without being a procedure call.
VBA_KEYWORDS: frozenset[str] = frozenset(
    word.lower()
    for word in {
        # ── Control flow ─────────────────────────────────────────────────
        "If", "Then", "Else", "ElseIf", "End", "Select", "Case", "Do",
        "Loop", "While", "Wend", "Until", "For", "Each", "In", "To", "Step",
        "Next", "With", "GoTo", "GoSub", "Return", "Exit", "Resume", "On",
        "Error", "Stop", "Call",
        # ── Declarations ─────────────────────────────────────────────────
        "Dim", "ReDim", "Preserve", "Static", "Const", "Private", "Public",
        "Friend", "Global", "Declare", "Sub", "Function", "Property", "Get",
        "Let", "Set", "Type", "Enum", "Event", "Implements", "Option",
        "ByVal", "ByRef", "Optional", "ParamArray", "As", "New", "WithEvents",
        "Lib", "Alias", "PtrSafe", "Attribute",
        # ── Operators / literals ─────────────────────────────────────────
        "And", "Or", "Not", "Xor", "Eqv", "Imp", "Mod", "Like", "Is",
        "TypeOf", "AddressOf", "True", "False", "Nothing", "Null", "Empty",
        "Me", "RaiseEvent", "Erase", "LSet", "RSet", "Open", "Close", "Print",
        "Write", "Input", "Line", "Seek", "Lock", "Unlock", "Put", "Get",
    }
)

# VBA / Office runtime functions that are never user procedures.
VBA_BUILTINS: frozenset[str] = frozenset(
    word.lower()
    for word in {
        # ── Conversion ───────────────────────────────────────────────────
        "CBool", "CByte", "CCur", "CDate", "CDbl", "CDec", "CInt", "CLng",
        "CLngLng", "CLngPtr", "CSng", "CStr", "CVar", "CVErr", "Val", "Str",
        "Hex", "Oct", "Fix", "Int", "Format", "FormatNumber",
        "FormatCurrency", "FormatPercent", "FormatDateTime",
        # ── Strings ──────────────────────────────────────────────────────
        "Len", "LenB", "Left", "LeftB", "Right", "RightB", "Mid", "MidB",
        "InStr", "InStrRev", "Replace", "Split", "Join", "Trim", "LTrim",
        "RTrim", "UCase", "LCase", "StrConv", "StrComp", "StrReverse",
        "Space", "String", "Asc", "AscW", "Chr", "ChrW", "Filter",
        # ── Math ─────────────────────────────────────────────────────────
        "Abs", "Atn", "Cos", "Exp", "Log", "Rnd", "Round", "Sgn", "Sin",
        "Sqr", "Tan", "Randomize",
        # ── Date / time ──────────────────────────────────────────────────
        "Date", "DateAdd", "DateDiff", "DatePart", "DateSerial", "DateValue",
        "Day", "Hour", "Minute", "Month", "MonthName", "Now", "Second",
        "Time", "Timer", "TimeSerial", "TimeValue", "Weekday", "WeekdayName",
        "Year",
        # ── Arrays / variants ────────────────────────────────────────────
        "Array", "LBound", "UBound", "IsArray", "IsDate", "IsEmpty",
        "IsError", "IsMissing", "IsNull", "IsNumeric", "IsObject", "TypeName",
        "VarType", "IIf", "Choose", "Switch", "Nz",
        # ── Interaction / files / objects ────────────────────────────────
        "MsgBox", "InputBox", "DoEvents", "Shell", "Environ", "Dir", "Kill",
        "FileLen", "FileDateTime", "FreeFile", "EOF", "LOF", "CurDir",
        "MkDir", "RmDir", "ChDir", "FileCopy", "Name", "CreateObject",
        "GetObject", "CallByName", "RGB", "QBColor", "Beep", "SendKeys",
        "AppActivate", "GetSetting", "SaveSetting", "DeleteSetting",
        "Application", "Range", "Cells", "Worksheets", "Sheets", "Workbooks",
        "Columns", "Rows", "Evaluate", "Debug",
    }
)


def is_reserved(name: str) -> bool:
    """True when *name* is a VBA keyword or runtime function."""
    lowered = name.lower()
    return lowered in VBA_KEYWORDS or lowered in VBA_BUILTINS

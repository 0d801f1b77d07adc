"""
Tests for the control-flow builder and its statement classifier.

Sources are written inline with ``textwrap.dedent``; the procedure header is
always line 1, so node ids (``L<line>``) can be asserted directly.
"""
from __future__ import annotations

import textwrap

import pytest

from vba_flow.builder.flow_builder import ControlFlowBuilder
from vba_flow.builder.statements import (
    classify,
    declared_locals,
    find_call_candidates,
    parameter_names,
)
from vba_flow.passes.procedure_block import ProcedureBlockPass
from vba_flow.pipeline.normalizer import LineNormalizer
from vba_flow.pipeline.symbol_table import SymbolTable


def _block(src):
    norm = LineNormalizer().normalize_text(textwrap.dedent(src))
    blocks = ProcedureBlockPass().run(norm.lines)
    return blocks[0], norm.comments


def _build(src, table=None, module="Module1"):
    block, comments = _block(src)
    if table is None:
        table = SymbolTable({module: [block.name]})
    return ControlFlowBuilder(table, module).build(block, comments)


def _edges(proc):
    return {(e.src, e.dst, e.label) for e in proc.edges}


def _types(proc):
    return [n.type for n in proc.nodes]


def _in_degree(proc, node_id):
    return sum(1 for e in proc.edges if e.dst == node_id)


def _out_labels(proc, node_id):
    return {e.label for e in proc.edges if e.src == node_id}


# ─── Statement classifier ────────────────────────────────────────────────────


class TestClassify:
    @pytest.mark.parametrize("text,kind", [
        ("If x > 0 Then", "if"),
        ("If x > 0 Then y = 1", "if_inline"),
        ("ElseIf x < 0 Then", "elseif"),
        ("Else", "else"),
        ("End If", "end_if"),
        ("EndIf", "end_if"),
        ("Do", "do"),
        ("Do Until done", "do"),
        ("Loop While x", "loop"),
        ("While x < 3", "while"),
        ("Wend", "wend"),
        ("For Each c In cells", "for"),
        ("Next", "next"),
        ("Select Case n", "select"),
        ("Case 1, 2", "case"),
        ("Case Else", "case"),
        ("End Select", "end_select"),
        ("With ws", "with"),
        ("End With", "end_with"),
        ("GoTo Done", "goto"),
        ("Done:", "label"),
        ("Exit Do", "exit_loop"),
        ("Exit For", "exit_loop"),
        ("Exit Sub", "exit"),
        ("Exit Function", "exit"),
        ("End", "exit"),
        ("Err.Raise 5", "exit"),
        ("x = 1", "statement"),
        ("On Error GoTo Handler", "statement"),
    ])
    def test_kinds(self, text, kind):
        assert classify(text).kind == kind

    def test_case_insensitive(self):
        assert classify("end if").kind == "end_if"
        assert classify("DO WHILE x").parts["keyword"] == "While"

    def test_inline_if_with_else(self):
        stmt = classify("If a Then x = 1 Else x = 2")
        assert stmt.parts["cond"] == "a"
        assert stmt.parts["then"].text == "x = 1"
        assert stmt.parts["else"].text == "x = 2"

    def test_inline_if_exit(self):
        stmt = classify("If err Then Exit Sub")
        assert stmt.parts["then"].kind == "exit"
        assert stmt.parts["else"] is None

    def test_next_variables(self):
        assert classify("Next j, i").parts["vars"] == ["j", "i"]

    def test_case_else_label_normalised(self):
        assert classify("case else").parts["label"] == "Else"

    def test_keyword_is_not_a_label(self):
        assert classify("Else:").kind == "else"

    def test_else_inside_string_is_not_a_branch(self):
        stmt = classify('If a Then MsgBox "Or Else what"')
        assert stmt.parts["then"].text == 'MsgBox "Or Else what"'
        assert stmt.parts["else"] is None

    def test_inline_else_after_string(self):
        stmt = classify('If a Then x = "Else" Else y = 2')
        assert stmt.parts["then"].text == 'x = "Else"'
        assert stmt.parts["else"].text == "y = 2"

    def test_then_inside_condition_string(self):
        stmt = classify('If s = "Then" Then x = 1')
        assert stmt.parts["cond"] == 's = "Then"'
        assert stmt.parts["then"].text == "x = 1"

    def test_label_with_statement(self):
        stmt = classify('EH: MsgBox "failed"')
        assert stmt.kind == "label"
        assert stmt.parts["label"] == "EH"
        assert stmt.parts["rest"].kind == "statement"
        assert stmt.parts["rest"].text == 'MsgBox "failed"'

    @pytest.mark.parametrize("text,rest", [("100", None), ("100:", None), ("100 y = 2", "y = 2")])
    def test_line_numbers_are_labels(self, text, rest):
        stmt = classify(text)
        assert stmt.kind == "label"
        assert stmt.parts["label"] == "100"
        assert (stmt.parts["rest"].text if stmt.parts["rest"] else None) == rest

    def test_named_argument_is_not_a_label(self):
        assert classify("Foo:=1").kind == "statement"


class TestCallCandidates:
    def _names(self, text, local_names=frozenset()):
        return [(c.qualifier, c.name, c.form) for c in find_call_candidates(text, local_names)]

    def test_call_keyword(self):
        assert self._names("Call Helpers.Log(1)") == [("Helpers", "Log", "call")]

    def test_qualified(self):
        assert self._names("x = Utils.Twice(y)") == [("Utils", "Twice", "qualified")]

    def test_bare(self):
        assert self._names("Foo()") == [(None, "Foo", "bare")]

    def test_builtins_and_keywords_filtered(self):
        assert self._names("x = Len(Trim(s)) And IIf(a, 1, 2)") == []

    def test_member_call_not_bare(self):
        # Kept as a qualified shape; resolution drops it because "ws" is no module.
        assert self._names("ws.Cells(1, 1).Value = 2") == [("ws", "Cells", "qualified")]

    def test_string_literals_ignored(self):
        assert self._names('MsgBox "Call Foo()"') == []

    def test_declaration_line(self):
        assert self._names("Dim buf(10) As Byte") == []

    def test_locals_filtered(self):
        assert self._names("total = values(i)", frozenset({"values"})) == []

    def test_assignment_target_filtered(self):
        assert self._names("arr(i) = Compute(i)") == [(None, "Compute", "bare")]

    def test_statement_form(self):
        assert self._names("LogMessage a, b") == [(None, "LogMessage", "statement")]

    def test_assignment_is_not_statement_form(self):
        assert self._names("x = 1") == []

    def test_duplicates_collapsed(self):
        assert self._names("x = Foo(1) + Foo(2)") == [(None, "Foo", "bare")]

    def test_declared_locals(self):
        assert declared_locals("Dim a As Long, b(5) As String, c") == ["a", "b", "c"]

    def test_parameter_names(self):
        header = "Function F(ByVal a As Long, Optional b As String = \"x,y\", ParamArray rest())"
        assert parameter_names(header) == ["a", "b", "rest"]


# ─── Scenario A: If / Else / End If ──────────────────────────────────────────


class TestIfElse:
    SRC = """\
        Sub T()
            If x > 0 Then
                y = 1
            Else
                y = 2
            End If
        End Sub
    """

    def test_node_sequence(self):
        proc = _build(self.SRC)
        assert _types(proc) == ["start", "cond", "op", "op", "join", "end"]
        assert proc.node("L2").text == "If x > 0?"
        assert proc.node("L6").text == "End If"

    def test_edges(self):
        proc = _build(self.SRC)
        assert _edges(proc) == {
            ("L1", "L2", ""),
            ("L2", "L3", "Yes"),
            ("L2", "L5", "No"),
            ("L3", "L6", ""),
            ("L5", "L6", ""),
            ("L6", "L7", ""),
        }

    def test_missing_else_synthesises_no_edge(self):
        proc = _build("""\
            Sub T()
                If ok Then
                    x = 1
                End If
            End Sub
        """)
        assert ("L2", "L4", "No") in _edges(proc)
        assert ("L3", "L4", "") in _edges(proc)

    def test_elseif_chain(self):
        proc = _build("""\
            Sub T()
                If a Then
                    x = 1
                ElseIf b Then
                    x = 2
                Else
                    x = 3
                End If
            End Sub
        """)
        edges = _edges(proc)
        assert ("L2", "L3", "Yes") in edges
        assert ("L2", "L4", "No") in edges
        assert ("L4", "L5", "Yes") in edges
        assert ("L4", "L7", "No") in edges
        assert {("L3", "L8", ""), ("L5", "L8", ""), ("L7", "L8", "")} <= edges
        # The explicit Else supplied the final "No"; nothing is synthesised.
        assert ("L4", "L8", "No") not in edges

    def test_empty_then_branch_goes_to_join(self):
        proc = _build("""\
            Sub T()
                If a Then
                Else
                    x = 1
                End If
            End Sub
        """)
        assert ("L2", "L5", "Yes") in _edges(proc)

    def test_cond_labels_are_yes_no(self):
        proc = _build("""\
            Sub T()
                If a Then
                    If b Then
                        x = 1
                    End If
                ElseIf c Then
                    x = 2
                End If
            End Sub
        """)
        for node in proc.nodes:
            if node.type == "cond":
                assert _out_labels(proc, node.id) <= {"Yes", "No"}


class TestSingleLineIf:
    def test_then_only(self):
        proc = _build("""\
            Sub T()
                If a Then x = 1
                y = 2
            End Sub
        """)
        assert [n.id for n in proc.nodes[1:4]] == ["L2", "L2_1", "L2_2"]
        assert proc.node("L2_2").type == "join"
        assert _edges(proc) >= {
            ("L2", "L2_1", "Yes"),
            ("L2", "L2_2", "No"),
            ("L2_1", "L2_2", ""),
            ("L2_2", "L3", ""),
        }

    def test_then_else(self):
        proc = _build("""\
            Sub T()
                If a Then x = 1 Else x = 2
            End Sub
        """)
        assert _edges(proc) >= {
            ("L2", "L2_1", "Yes"),
            ("L2", "L2_2", "No"),
            ("L2_1", "L2_3", ""),
            ("L2_2", "L2_3", ""),
        }

    def test_exit_does_not_reach_join(self):
        proc = _build("""\
            Sub T()
                If failed Then Exit Sub
                x = 1
            End Sub
        """)
        exit_node = proc.node("L2_1")
        assert exit_node.type == "end"
        assert ("L2", "L2_1", "Yes") in _edges(proc)
        assert not [e for e in proc.edges if e.src == "L2_1"]
        assert ("L2", "L2_2", "No") in _edges(proc)

    def test_call_in_then_branch(self):
        table = SymbolTable({"Module1": ["T", "Notify"]})
        proc = _build("""\
            Sub T()
                If a Then Notify
            End Sub
        """, table=table)
        assert proc.node("L2_1").type == "call"
        assert [c.target for c in proc.calls] == ["Module1.Notify"]

    def test_else_in_string_keeps_statement_whole(self):
        proc = _build("""\
            Sub T()
                If a Then MsgBox "Or Else what"
            End Sub
        """)
        assert _types(proc) == ["start", "cond", "op", "join", "end"]
        assert proc.node("L2_1").text == 'MsgBox "Or Else what"'
        assert _edges(proc) >= {
            ("L2", "L2_1", "Yes"),
            ("L2", "L2_2", "No"),
            ("L2_1", "L2_2", ""),
        }


# ─── Scenario B: loops ───────────────────────────────────────────────────────


class TestLoops:
    def test_do_while(self):
        proc = _build("""\
            Sub T()
                Do While i < 10
                    i = i + 1
                Loop
            End Sub
        """)
        assert proc.node("L2").type == "loop"
        assert proc.node("L4").type == "loopEnd"
        assert proc.node("L4").text == "Loop End"
        assert _edges(proc) == {
            ("L1", "L2", ""),
            ("L2", "L3", "Yes"),
            ("L3", "L4", ""),
            ("L4", "L2", "loop"),
            ("L4", "L5", ""),
        }
        [span] = proc.loop_spans
        assert (span.head_id, span.end_id, span.start_line, span.end_line) == ("L2", "L4", 2, 4)

    def test_do_until_body_edge_is_no(self):
        proc = _build("""\
            Sub T()
                Do Until done
                    done = True
                Loop
            End Sub
        """)
        assert ("L2", "L3", "No") in _edges(proc)

    def test_bare_do_with_loop_condition(self):
        proc = _build("""\
            Sub T()
                Do
                    i = i + 1
                Loop Until i > 3
            End Sub
        """)
        assert ("L2", "L3", "") in _edges(proc)
        assert proc.node("L4").text == "Loop Until i > 3"

    def test_while_wend(self):
        proc = _build("""\
            Sub T()
                While x < 3
                    x = x + 1
                Wend
            End Sub
        """)
        assert ("L2", "L3", "Yes") in _edges(proc)
        assert ("L4", "L2", "loop") in _edges(proc)
        assert proc.node("L4").text == "Wend"

    def test_for_next(self):
        proc = _build("""\
            Sub T()
                For i = 1 To 10
                    x = x + i
                Next i
            End Sub
        """)
        assert proc.node("L2").text == "For i = 1 To 10"
        assert proc.node("L4").text == "For Next End"
        assert ("L2", "L3", "") in _edges(proc)
        assert ("L4", "L2", "next") in _edges(proc)

    def test_next_closes_two_loops(self):
        proc = _build("""\
            Sub T()
                For i = 1 To 3
                    For j = 1 To 3
                        x = i * j
                Next j, i
            End Sub
        """)
        spans = {(s.head_id, s.end_id) for s in proc.loop_spans}
        assert spans == {("L3", "L5"), ("L2", "L5_1")}
        assert ("L5", "L5_1", "") in _edges(proc)
        assert ("L5_1", "L6", "") in _edges(proc)

    def test_exit_do_leaves_loop(self):
        proc = _build("""\
            Sub T()
                Do
                    If done Then Exit Do
                    i = i + 1
                Loop
                x = 0
            End Sub
        """)
        brk = proc.node("L3_1")
        assert brk.type == "op"
        assert ("L3", "L3_1", "Yes") in _edges(proc)
        assert ("L3_1", "L6", "exit") in _edges(proc)
        assert ("L5", "L6", "") in _edges(proc)

    def test_mismatched_terminator_discards_inner_frame(self):
        proc = _build("""\
            Sub T()
                Do
                    If a Then
                        x = 1
                Loop
                End If
            End Sub
        """)
        assert [(s.head_id, s.end_id) for s in proc.loop_spans] == [("L2", "L5")]
        # The orphan End If is ignored: no join node on its line.
        assert proc.node("L6") is None
        assert ("L5", "L7", "") in _edges(proc)

    def test_unmatched_terminator_ignored(self):
        proc = _build("""\
            Sub T()
                x = 1
                Loop
                y = 2
            End Sub
        """)
        assert proc.node("L3") is None
        assert ("L2", "L4", "") in _edges(proc)
        assert proc.loop_spans == []

    def test_unterminated_loop_has_no_span(self):
        proc = _build("""\
            Sub T()
                Do While x
                    x = False
            End Sub
        """)
        assert proc.loop_spans == []
        assert ("L3", "L4", "") in _edges(proc)


# ─── Scenario D: Select Case ─────────────────────────────────────────────────


class TestSelectCase:
    def test_cases_converge_on_join(self):
        proc = _build("""\
            Sub T()
                Select Case n
                    Case 1
                        x = 1
                    Case Else
                End Select
            End Sub
        """)
        assert _types(proc) == ["start", "switch", "case", "op", "case", "join", "end"]
        assert _edges(proc) == {
            ("L1", "L2", ""),
            ("L2", "L3", "1"),
            ("L3", "L4", ""),
            ("L2", "L5", "Else"),
            ("L4", "L6", ""),
            ("L5", "L6", ""),
            ("L6", "L7", ""),
        }

    def test_cases_chain_from_switch_not_previous_case(self):
        proc = _build("""\
            Sub T()
                Select Case n
                    Case 1
                    Case 2
                End Select
            End Sub
        """)
        assert ("L3", "L4", "") not in _edges(proc)
        assert ("L2", "L4", "2") in _edges(proc)

    def test_no_case_falls_back_to_switch_join(self):
        proc = _build("""\
            Sub T()
                Select Case n
                End Select
            End Sub
        """)
        assert ("L2", "L3", "") in _edges(proc)


# ─── With / GoTo / labels / exits ────────────────────────────────────────────


class TestWith:
    def test_block_and_join(self):
        proc = _build("""\
            Sub T()
                With Sheet1
                    .Value = 1
                End With
            End Sub
        """)
        assert _types(proc) == ["start", "block", "op", "join", "end"]
        assert proc.node("L4").text == "End With"
        assert ("L3", "L4", "") in _edges(proc)


class TestGoToAndLabels:
    SRC = """\
        Sub T()
            On Error GoTo Handler
            x = 1
            GoTo Done
        Retry:
            x = 2
            GoTo Retry
        Done:
            Exit Sub
        Handler:
            MsgBox "failed"
        End Sub
    """

    def test_forward_and_backward_goto(self):
        proc = _build(self.SRC)
        edges = _edges(proc)
        assert ("L4", "L8", "goto") in edges
        assert ("L7", "L5", "goto") in edges

    def test_on_error_falls_through_and_reaches_handler(self):
        proc = _build(self.SRC)
        assert proc.node("L2").type == "op"
        assert ("L2", "L3", "") in _edges(proc)
        assert ("L2", "L10", "goto") in _edges(proc)

    def test_label_starts_new_chain(self):
        proc = _build(self.SRC)
        # Nothing falls into Retry: after the unconditional GoTo.
        assert [e for e in proc.edges if e.dst == "L5" and e.label != "goto"] == []

    def test_goto_clears_cursor(self):
        proc = _build(self.SRC)
        assert [e.dst for e in proc.edges if e.src == "L4"] == ["L8"]

    def test_label_right_after_start_is_connected(self):
        proc = _build("""\
            Sub T()
            Top:
                x = 1
            End Sub
        """)
        assert ("L1", "L2", "") in _edges(proc)

    def test_label_mid_body_not_fallen_into(self):
        proc = _build("""\
            Sub T()
                x = 1
            Again:
                y = 2
            End Sub
        """)
        assert _in_degree(proc, "L3") == 0
        assert ("L3", "L4", "") in _edges(proc)

    def test_label_sharing_line_with_statement(self):
        proc = _build("""\
            Sub T()
                On Error GoTo EH
                x = 1
                Exit Sub
            EH: MsgBox "failed"
            End Sub
        """)
        assert proc.node("L5").type == "label"
        assert proc.node("L5_1").text == 'MsgBox "failed"'
        assert _edges(proc) >= {
            ("L2", "L5", "goto"),
            ("L5", "L5_1", ""),
            ("L5_1", "L6", ""),
        }

    def test_line_number_target(self):
        proc = _build("""\
            Sub T()
                GoTo 100
                x = 1
            100 y = 2
            End Sub
        """)
        assert proc.node("L4").type == "label"
        assert ("L2", "L4", "goto") in _edges(proc)
        assert ("L4", "L4_1", "") in _edges(proc)

    def test_on_error_goto_zero_is_not_a_jump(self):
        proc = _build("""\
            Sub T()
                On Error GoTo 0
            End Sub
        """)
        assert [e for e in proc.edges if e.label == "goto"] == []

    def test_exit_sub_in_block_if(self):
        proc = _build("""\
            Sub T()
                If bad Then
                    Exit Sub
                End If
                x = 1
            End Sub
        """)
        assert proc.node("L3").type == "end"
        assert ("L2", "L3", "Yes") in _edges(proc)
        assert ("L2", "L4", "No") in _edges(proc)
        assert not [e for e in proc.edges if e.src == "L3"]

    def test_dead_code_after_exit_is_kept(self):
        proc = _build("""\
            Sub T()
                Exit Sub
                x = 1
            End Sub
        """)
        assert proc.node("L3").type == "op"
        assert _in_degree(proc, "L3") == 0
        assert ("L3", "L4", "") in _edges(proc)


# ─── Scenario C: call sites ──────────────────────────────────────────────────


class TestCallSites:
    @pytest.fixture
    def table(self):
        return SymbolTable({
            "Module1": ["T", "Helper"],
            "Utils": ["Twice", "Notify"],
        })

    def _calls(self, body, table):
        proc = _build(f"Sub T()\n    {body}\nEnd Sub\n", table=table)
        return [(c.target, c.resolved) for c in proc.calls], proc

    def test_unresolved_bare_call(self, table):
        calls, proc = self._calls("Foo()", table)
        assert calls == [("Foo", False)]
        assert proc.node("L2").type == "call"
        assert proc.calls[0].source_line == 2

    def test_call_keyword_same_module(self, table):
        calls, _ = self._calls("Call Helper", table)
        assert calls == [("Module1.Helper", True)]

    def test_qualified_call(self, table):
        calls, _ = self._calls("x = Utils.Twice(y)", table)
        assert calls == [("Utils.Twice", True)]

    def test_unqualified_resolves_in_other_module(self, table):
        calls, _ = self._calls('Notify "hello"', table)
        assert calls == [("Utils.Notify", True)]

    def test_qualified_unknown_procedure(self, table):
        calls, _ = self._calls("Utils.Missing 1", table)
        assert calls == [("Utils.Missing", False)]

    def test_object_member_is_not_a_call(self, table):
        calls, proc = self._calls('ws.Range("A1").Value = 1', table)
        assert calls == []
        assert proc.node("L2").type == "op"

    def test_unknown_statement_word_is_not_a_call(self, table):
        calls, _ = self._calls("Beep2 1, 2", table)
        assert calls == []

    def test_declared_array_is_not_a_call(self, table):
        proc = _build("""\
            Sub T()
                Dim values(10) As Long
                total = values(3)
            End Sub
        """, table=table)
        assert proc.calls == []

    def test_parameter_is_not_a_call(self, table):
        proc = _build("""\
            Sub T(items)
                x = items(1)
            End Sub
        """, table=table)
        assert proc.calls == []

    def test_case_insensitive_resolution(self, table):
        calls, _ = self._calls("call utils.twice(1)", table)
        assert calls == [("Utils.Twice", True)]

    def test_call_after_condition_uses_yes_edge(self, table):
        proc = _build("""\
            Sub T()
                If ready Then
                    Helper
                End If
            End Sub
        """, table=table)
        assert ("L2", "L3", "Yes") in _edges(proc)
        assert proc.node("L3").type == "call"


# ─── Procedure-level properties ──────────────────────────────────────────────


COMPLEX = """\
    Function Busy(ByVal n As Long) As Long
        Dim i As Long ' counter
        For i = 1 To n
            Select Case i Mod 3
                Case 0
                    If i > 5 Then Exit For
                Case 1
                    Do While n > 0
                        n = n - 1
                    Loop
                Case Else
                    With Application
                        .StatusBar = i
                    End With
            End Select
        Next
        If n < 0 Then
            GoTo Fail
        End If
        Busy = i
        Exit Function
    Fail:
        Busy = -1
    End Function
"""


class TestProcedureProperties:
    def test_idempotent(self):
        block, comments = _block(COMPLEX)
        builder = ControlFlowBuilder(SymbolTable({"M": ["Busy"]}), "M")
        first = builder.build(block, comments).to_dict()
        second = builder.build(block, comments).to_dict()
        assert first == second

    def test_node_ids_unique(self):
        proc = _build(COMPLEX)
        ids = [n.id for n in proc.nodes]
        assert len(ids) == len(set(ids))

    def test_edges_reference_known_nodes(self):
        proc = _build(COMPLEX)
        ids = {n.id for n in proc.nodes}
        for e in proc.edges:
            assert e.src in ids and e.dst in ids

    def test_start_degrees(self):
        proc = _build(COMPLEX)
        start = proc.nodes[0]
        assert start.type == "start"
        assert _in_degree(proc, start.id) == 0
        assert [e for e in proc.edges if e.src == start.id]

    def test_empty_body(self):
        proc = _build("""\
            Sub Nothing()
            End Sub
        """)
        assert _types(proc) == ["start", "end"]
        assert _edges(proc) == {("L1", "L2", "")}
        assert proc.node("L1").text == "Sub Nothing"

    def test_reachable_nodes_have_predecessors(self):
        proc = _build(COMPLEX)
        for node in proc.nodes[1:]:
            assert _in_degree(proc, node.id) >= 1, node

    def test_comment_attached_to_node(self):
        proc = _build(COMPLEX)
        assert proc.node("L2").comment == "counter"

    def test_cond_labels(self):
        proc = _build(COMPLEX)
        for node in proc.nodes:
            if node.type == "cond":
                assert _out_labels(proc, node.id) <= {"Yes", "No"}

    def test_loop_spans(self):
        proc = _build(COMPLEX)
        assert {(s.head_id, s.end_id) for s in proc.loop_spans} == {("L8", "L10"), ("L3", "L16")}

    def test_exit_for_joins_after_loop(self):
        proc = _build(COMPLEX)
        assert ("L6_1", "L17", "exit") in _edges(proc)

    def test_property_end_text(self):
        proc = _build("""\
            Property Get Size() As Long
                Size = 1
            End Property
        """)
        assert proc.nodes[-1].text == "End Property"
        assert proc.kind == "Property Get"

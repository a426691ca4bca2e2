"""Diagnostic value tests."""

from rowshape.diagnostics import (
    NO_SPAN,
    Diagnostic,
    DiagnosticKind,
    DiagnosticList,
    Resolved,
    Severity,
    Span,
)


class TestSpan:
    def test_of_slices_source(self):
        span = Span.of("SELECT a FROM t", 7, 8)
        assert span == Span(7, 8, "a")

    def test_no_span_is_empty(self):
        assert NO_SPAN.text == ""
        assert NO_SPAN.start == NO_SPAN.end == 0


class TestDiagnostic:
    def test_error(self):
        diagnostic = Diagnostic.error(DiagnosticKind.UNKNOWN_TABLE, "Unknown table `t`")
        assert diagnostic.severity is Severity.ERROR
        assert diagnostic.is_error

    def test_warning(self):
        diagnostic = Diagnostic.warning(DiagnosticKind.DUPLICATE_CONVERTER, "ignored")
        assert diagnostic.severity is Severity.WARNING
        assert not diagnostic.is_error

    def test_str_includes_span_text(self):
        diagnostic = Diagnostic.error(
            DiagnosticKind.UNKNOWN_TABLE, "Unknown table `t`", Span(14, 15, "t")
        )
        assert str(diagnostic) == "error[unknown_table] at 't': Unknown table `t`"

    def test_str_without_span(self):
        diagnostic = Diagnostic.warning(DiagnosticKind.DUPLICATE_CONVERTER, "ignored")
        assert str(diagnostic) == "warning[duplicate_converter]: ignored"


class TestResolved:
    def test_has_errors(self):
        warning = Diagnostic.warning(DiagnosticKind.DUPLICATE_CONVERTER, "ignored")
        error = Diagnostic.error(DiagnosticKind.UNKNOWN_ENUM, "Could not find `X`")
        assert not Resolved(1, (warning,)).has_errors
        assert Resolved(1, (warning, error)).has_errors


class TestDiagnosticList:
    def test_take_collects_and_returns_value(self):
        diagnostics = DiagnosticList()
        error = Diagnostic.error(DiagnosticKind.UNKNOWN_ENUM, "Could not find `X`")
        assert diagnostics.take(Resolved("value", (error,))) == "value"
        assert diagnostics.freeze() == (error,)
        assert diagnostics.errors == [error]
        assert len(diagnostics) == 1

    def test_keeps_order(self):
        first = Diagnostic.error(DiagnosticKind.UNKNOWN_TABLE, "first")
        second = Diagnostic.warning(DiagnosticKind.DUPLICATE_CONVERTER, "second")
        diagnostics = DiagnosticList([first])
        diagnostics.add(second)
        assert list(diagnostics) == [first, second]

"""Tests for fplsp.handlers — diagnostics, completion and hover translation."""
from __future__ import annotations

from lsprotocol import types as lsp

from fplsp.document import Document
from fplsp.provider import Finding, NullProvider, Suggestion, SuggestionKind

URI = 'file:///expr.fhirpath'


class StubProvider:

    def __init__(self, findings=(), suggestions=(), docs=None, fail=False):
        self.findings = list(findings)
        self.suggestions = list(suggestions)
        self.docs = docs or {}
        self.fail = fail
        self.calls = []

    def analyze(self, text):
        if self.fail:
            raise ValueError('unexpected token')
        return self.findings

    def complete(self, text, offset, limit):
        self.calls.append((text, offset, limit))
        if self.fail:
            raise ValueError('model unavailable')
        return self.suggestions

    def describe(self, word):
        if self.fail:
            raise KeyError(word)
        return self.docs.get(word)


class TestGetDiagnostics:
    def test_findings_become_diagnostics(self):
        from fplsp.handlers import get_diagnostics
        doc = Document(URI, 'Patient.nmae')
        provider = StubProvider(findings=[
            Finding('Unknown property nmae', 8, 12, lsp.DiagnosticSeverity.Warning, 'unknown-property'),
        ])
        [d] = get_diagnostics(provider, doc)
        assert d.range == lsp.Range(
            start=lsp.Position(line=0, character=8),
            end=lsp.Position(line=0, character=12),
        )
        assert d.severity == lsp.DiagnosticSeverity.Warning
        assert d.code == 'unknown-property'
        assert d.source == 'fplsp'

    def test_analyzer_failure_flags_whole_document(self):
        from fplsp.handlers import get_diagnostics
        doc = Document(URI, 'Patient.(\nfoo')
        [d] = get_diagnostics(StubProvider(fail=True), doc)
        assert d.message == 'FHIRPath analysis error: unexpected token'
        assert d.severity == lsp.DiagnosticSeverity.Error
        assert d.range.start == lsp.Position(line=0, character=0)
        assert d.range.end == lsp.Position(line=1, character=3)

    def test_null_provider(self):
        from fplsp.handlers import get_diagnostics
        assert get_diagnostics(NullProvider(), Document(URI, 'x')) == []


class TestGetCompletions:
    def test_items(self):
        from fplsp.handlers import get_completions
        provider = StubProvider(suggestions=[
            Suggestion('name', SuggestionKind.PROPERTY, detail='HumanName[]'),
            Suggestion('where', SuggestionKind.FUNCTION, insert_text='where(', sort_text='1'),
        ])
        doc = Document(URI, 'Patient.')
        items = get_completions(provider, doc, lsp.Position(line=0, character=8), limit=50)
        assert provider.calls == [('Patient.', 8, 50)]
        assert items[0].label == 'name'
        assert items[0].kind == lsp.CompletionItemKind.Property
        assert items[0].insert_text == 'name'
        assert items[0].detail == 'HumanName[]'
        assert items[1].kind == lsp.CompletionItemKind.Function
        assert items[1].insert_text == 'where('
        assert items[1].sort_text == '1'

    def test_limit_is_enforced(self):
        from fplsp.handlers import get_completions
        provider = StubProvider(suggestions=[Suggestion(f's{i}') for i in range(10)])
        items = get_completions(provider, Document(URI, ''), lsp.Position(line=0, character=0), limit=3)
        assert [i.label for i in items] == ['s0', 's1', 's2']

    def test_provider_failure_gives_empty_list(self):
        from fplsp.handlers import get_completions
        items = get_completions(StubProvider(fail=True), Document(URI, 'a.'), lsp.Position(line=0, character=2))
        assert items == []


class TestGetHover:
    def test_markdown_for_known_word(self):
        from fplsp.handlers import get_hover
        provider = StubProvider(docs={'Patient': 'FHIR Patient Resource'})
        doc = Document(URI, 'Patient.name')
        hover = get_hover(provider, doc, lsp.Position(line=0, character=3))
        assert hover.contents.kind == lsp.MarkupKind.Markdown
        assert hover.contents.value == '**Patient**\n\nFHIR Patient Resource'
        assert hover.range.end == lsp.Position(line=0, character=7)

    def test_unknown_word(self):
        from fplsp.handlers import get_hover
        doc = Document(URI, 'Patient.name')
        assert get_hover(StubProvider(), doc, lsp.Position(line=0, character=10)) is None

    def test_no_word_under_cursor(self):
        from fplsp.handlers import get_hover
        doc = Document(URI, 'a + b')
        assert get_hover(StubProvider(docs={'a': 'x'}), doc, lsp.Position(line=0, character=2)) is None

    def test_describe_failure(self):
        from fplsp.handlers import get_hover
        doc = Document(URI, 'Patient')
        assert get_hover(StubProvider(fail=True), doc, lsp.Position(line=0, character=1)) is None

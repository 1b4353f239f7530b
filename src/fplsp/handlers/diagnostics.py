"""Convert provider findings into LSP Diagnostic objects."""
from __future__ import annotations

import logging

from lsprotocol import types as lsp

from fplsp.document import Document
from fplsp.positions import offsets_to_range
from fplsp.provider import AnalysisProvider

logger = logging.getLogger(__name__)

SOURCE = 'fplsp'


def get_diagnostics(provider: AnalysisProvider, doc: Document) -> list[lsp.Diagnostic]:
    """Return LSP ``Diagnostic`` objects for every finding in *doc*.

    If the provider raises, the whole document is flagged with a single
    error diagnostic carrying the exception message.
    """
    try:
        findings = provider.analyze(doc.source)
    except Exception as e:
        logger.warning('analysis failed for %s: %s', doc.uri, e, exc_info=True)
        return [lsp.Diagnostic(
            range=offsets_to_range(doc.source, 0, len(doc.source)),
            message=f'FHIRPath analysis error: {e}',
            severity=lsp.DiagnosticSeverity.Error,
            source=SOURCE,
        )]

    diags: list[lsp.Diagnostic] = []
    for finding in findings:
        start = max(0, finding.start)
        end = max(start, finding.end)
        diags.append(lsp.Diagnostic(
            range=offsets_to_range(doc.source, start, end),
            message=finding.message,
            severity=finding.severity,
            code=finding.code,
            source=SOURCE,
        ))
    return diags

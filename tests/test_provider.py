"""Tests for fplsp.provider — provider loading and kind mapping."""
from __future__ import annotations

import textwrap

import pytest
from lsprotocol import types as lsp

from fplsp.provider import (
    NullProvider,
    ProviderLoadError,
    SuggestionKind,
    load_provider,
    lsp_kind,
)

PROVIDER_MODULE = textwrap.dedent('''
    class Provider:
        def analyze(self, text):
            return []

        def complete(self, text, offset, limit):
            return []

        def describe(self, word):
            return None


    def make_provider():
        return Provider()


    instance = Provider()


    class Incomplete:
        def analyze(self, text):
            return []
''')


@pytest.fixture
def provider_module(tmp_path, monkeypatch):
    (tmp_path / 'fp_test_provider.py').write_text(PROVIDER_MODULE)
    monkeypatch.syspath_prepend(str(tmp_path))
    return 'fp_test_provider'


class TestLoadProvider:
    def test_none_gives_null_provider(self):
        assert isinstance(load_provider(None), NullProvider)

    def test_class_is_instantiated(self, provider_module):
        provider = load_provider(f'{provider_module}:Provider')
        assert type(provider).__name__ == 'Provider'

    def test_factory_is_called(self, provider_module):
        provider = load_provider(f'{provider_module}:make_provider')
        assert provider.describe('x') is None

    def test_instance_is_used_as_is(self, provider_module):
        import importlib
        module = importlib.import_module(provider_module)
        assert load_provider(f'{provider_module}:instance') is module.instance

    def test_missing_methods(self, provider_module):
        with pytest.raises(ProviderLoadError, match='complete'):
            load_provider(f'{provider_module}:Incomplete')

    def test_bad_reference(self):
        with pytest.raises(ProviderLoadError):
            load_provider('no_colon_here')

    def test_unknown_module(self):
        with pytest.raises(ProviderLoadError):
            load_provider('fplsp_does_not_exist:Provider')

    def test_unknown_attribute(self, provider_module):
        with pytest.raises(ProviderLoadError):
            load_provider(f'{provider_module}:Nope')


class TestKinds:
    def test_mapping(self):
        assert lsp_kind(SuggestionKind.FUNCTION) == lsp.CompletionItemKind.Function
        assert lsp_kind(SuggestionKind.TYPE) == lsp.CompletionItemKind.Class
        assert lsp_kind(SuggestionKind.TEXT) == lsp.CompletionItemKind.Text

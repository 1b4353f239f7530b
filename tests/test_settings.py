"""Tests for fplsp.settings — SettingsResolver cascade."""
from __future__ import annotations


class TestSettingsResolver:
    def test_defaults(self):
        from fplsp.settings import SettingsResolver
        s = SettingsResolver().resolve()
        assert s.debounce == 0.5
        assert s.max_completions == 100
        assert s.log_level is None

    def test_client_settings(self):
        from fplsp.settings import SettingsResolver
        r = SettingsResolver()
        r.set_client_settings({'debounceMs': 250, 'maxCompletions': 20, 'logLevel': 'debug'})
        s = r.resolve()
        assert s.debounce == 0.25
        assert s.max_completions == 20
        assert s.log_level == 'DEBUG'

    def test_clearing_client_settings_restores_defaults(self):
        from fplsp.settings import SettingsResolver
        r = SettingsResolver()
        r.set_client_settings({'maxCompletions': 5})
        r.set_client_settings(None)
        assert r.resolve().max_completions == 100

    def test_invalid_values_are_ignored(self):
        from fplsp.settings import SettingsResolver
        r = SettingsResolver()
        r.set_client_settings({
            'debounceMs': -1,
            'maxCompletions': True,
            'logLevel': 'chatty',
            'unknown': 1,
        })
        assert r.resolve() == SettingsResolver().resolve()

    def test_project_config_file(self, tmp_path):
        from fplsp.settings import SettingsResolver
        (tmp_path / '.fplsp.toml').write_text('maxCompletions = 7\ndebounceMs = 0\n')
        s = SettingsResolver(workspace_root=str(tmp_path)).resolve()
        assert s.max_completions == 7
        assert s.debounce == 0.0

    def test_client_settings_win_over_project_config(self, tmp_path):
        from fplsp.settings import SettingsResolver
        (tmp_path / '.fplsp.toml').write_text('maxCompletions = 7\ndebounceMs = 100\n')
        r = SettingsResolver(workspace_root=str(tmp_path))
        r.set_client_settings({'maxCompletions': 3})
        s = r.resolve()
        assert s.max_completions == 3
        assert s.debounce == 0.1

    def test_broken_project_config_is_ignored(self, tmp_path):
        from fplsp.settings import SettingsResolver
        (tmp_path / '.fplsp.toml').write_text('maxCompletions = [unterminated\n')
        assert SettingsResolver(workspace_root=str(tmp_path)).resolve().max_completions == 100

    def test_missing_workspace_root(self, tmp_path):
        from fplsp.settings import SettingsResolver
        s = SettingsResolver(workspace_root=str(tmp_path / 'nope')).resolve()
        assert s.max_completions == 100


class TestSettingsSection:
    def test_nested_section(self):
        from fplsp.settings import settings_section
        assert settings_section({'fplsp': {'maxCompletions': 1}}) == {'maxCompletions': 1}

    def test_flat_mapping(self):
        from fplsp.settings import settings_section
        assert settings_section({'logLevel': 'info'}) == {'logLevel': 'info'}

    def test_non_mapping(self):
        from fplsp.settings import settings_section
        assert settings_section(None) is None
        assert settings_section(['x']) is None

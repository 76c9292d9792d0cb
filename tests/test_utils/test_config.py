"""
Tests for configuration loading.
"""

import json

from pcbs.config import get_config, get_section, reset_config, set_config


class TestConfig:
    """Tests for defaults, overrides and sections."""

    def test_defaults(self):
        config = get_config()

        assert config['fetch']['allowed_hosts'] == ['l1.prodbx.com', 'login.prodbx.com']
        assert config['document_processor']['package_name_max_length'] == 100
        assert config['analysis']['amount_matching_tolerance'] == 0.01

    def test_set_config_merges_with_defaults(self):
        set_config({'fetch': {'timeout': 5}})

        assert get_section('fetch')['timeout'] == 5
        assert get_section('fetch')['max_workers'] == 4
        assert get_section('database')['db_type'] == 'sqlite'

    def test_missing_section(self):
        assert get_section('nope') == {}

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv('PCBS_FETCH__TIMEOUT', '7.5')
        monkeypatch.setenv('PCBS_FETCH__MAX_WORKERS', '2')
        monkeypatch.setenv('PCBS_DATABASE__ECHO', 'true')
        reset_config()

        assert get_section('fetch')['timeout'] == 7.5
        assert get_section('fetch')['max_workers'] == 2
        assert get_section('database')['echo'] is True

    def test_config_file(self, monkeypatch, tmp_path):
        path = tmp_path / 'pcbs.json'
        path.write_text(json.dumps({'analysis': {'amount_matching_tolerance': 1}}))
        monkeypatch.setenv('PCBS_CONFIG', str(path))
        reset_config()

        assert get_section('analysis')['amount_matching_tolerance'] == 1
        assert get_section('fetch')['timeout'] == 30.0

    def test_unreadable_config_file_is_ignored(self, monkeypatch, tmp_path):
        path = tmp_path / 'broken.json'
        path.write_text('{not json')
        monkeypatch.setenv('PCBS_CONFIG', str(path))
        reset_config()

        assert get_section('fetch')['timeout'] == 30.0

"""
Unit tests for configuration and source normalization.
"""
import json
import os
import pathlib
import sys
import tempfile

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
from packager.config import BuildConfig, PackagerOptions, deep_merge
from packager.errors import ConfigurationError
from packager.sources import Group, Single, extension_of, is_minified_name, normalize_sources


class TestDeepMerge:
    """Tests for deep_merge()."""

    def test_override_wins(self):
        assert deep_merge({'a': 1, 'b': 2}, {'b': 3}) == {'a': 1, 'b': 3}

    def test_nested_dicts_merge(self):
        base = {'level': {'1': {'all': True}, '2': {'restructure': False}}}
        merged = deep_merge(base, {'level': {'2': {'restructure': True}}})
        assert merged == {'level': {'1': {'all': True}, '2': {'restructure': True}}}

    def test_inputs_untouched(self):
        base = {'a': {'b': 1}}
        override = {'a': {'c': 2}}
        deep_merge(base, override)
        assert base == {'a': {'b': 1}}
        assert override == {'a': {'c': 2}}

    def test_none_override(self):
        assert deep_merge({'a': 1}, None) == {'a': 1}


class TestPackagerOptions:
    """Tests for PackagerOptions."""

    def test_coerce(self):
        assert PackagerOptions.coerce(None) == PackagerOptions()
        options = PackagerOptions(minify=True)
        assert PackagerOptions.coerce(options) is options
        assert PackagerOptions.coerce({'watch': True}).watch is True

    def test_coerce_rejects_bad_values(self):
        with pytest.raises(ConfigurationError):
            PackagerOptions.coerce(['minify'])
        with pytest.raises(ConfigurationError):
            PackagerOptions.coerce({'js': 'not a dict'})

    def test_extra_keys_go_to_watcher(self):
        options = PackagerOptions(watch=True, js={'compact': False}, persistent=False)
        overrides = options.watcher_overrides()
        assert overrides['persistent'] is False
        assert overrides['watch'] is True
        assert 'js' not in overrides


class TestBuildConfig:
    """Tests for BuildConfig.load()."""

    def test_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'fepack.json')
            with open(path, 'w') as f:
                json.dump({
                    'sources': ['a.css', ['b.css', 'c.css']],
                    'destination': 'out.css',
                    'options': {'minify': True, 'interval': 0.5},
                }, f)

            config = BuildConfig.load(path)

            assert config.sources == ['a.css', ['b.css', 'c.css']]
            assert config.destination == 'out.css'
            assert config.options.minify is True
            assert config.options.model_extra == {'interval': 0.5}
            assert config.request_options == {}

    def test_missing_file(self):
        with pytest.raises(ConfigurationError, match='not found'):
            BuildConfig.load('/nonexistent/fepack.json')

    def test_invalid_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'fepack.json')
            with open(path, 'w') as f:
                f.write('{nope')
            with pytest.raises(ConfigurationError, match='not valid JSON'):
                BuildConfig.load(path)


class TestSources:
    """Tests for source normalization."""

    def test_normalize(self):
        entries = normalize_sources(['a.js', ['b.js', pathlib.Path('c.js')], pathlib.Path('d.js')])
        assert entries == [
            Single(location='a.js'),
            Group(locations=('b.js', 'c.js')),
            Single(location='d.js'),
        ]

    def test_single_string(self):
        assert normalize_sources('a.js') == [Single(location='a.js')]

    def test_rejects_bad_sources(self):
        with pytest.raises(ConfigurationError):
            normalize_sources([None])
        with pytest.raises(ConfigurationError):
            normalize_sources([['a.js', 3]])
        with pytest.raises(ConfigurationError):
            normalize_sources({'a': 'b'})

    def test_entries_are_immutable(self):
        entry = Single(location='a.js')
        with pytest.raises(Exception):
            entry.location = 'b.js'

    def test_labels(self):
        assert Single(location='src/a.js').label == 'a.js'
        assert Group(locations=('src/a.js', 'lib/b.js')).label == 'a.js, b.js'

    def test_extension_of(self):
        assert extension_of('src/app.CSS') == 'css'
        assert extension_of('https://cdn.example.com/x.js?v=1#top') == 'js'

    def test_is_minified_name(self):
        assert is_minified_name('vendor.min.js')
        assert is_minified_name('https://cdn.example.com/lib.min.css?v=1')
        assert not is_minified_name('admin.js')
        assert not is_minified_name('app.js')

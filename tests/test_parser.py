"""Tests for grammar selection and parsing."""
import pytest

from undebug.analyzer.parser import LanguageParser


@pytest.mark.parametrize('filename, language', [
    ('app.js', 'javascript'),
    ('lib.MJS', 'javascript'),
    ('server.cjs', 'javascript'),
    ('view.jsx', 'javascript'),
    ('index.ts', 'typescript'),
    ('mod.mts', 'typescript'),
    ('mod.cts', 'typescript'),
    ('App.tsx', 'tsx'),
])
def test_from_file_extension(filename, language):
    parser = LanguageParser.from_file_extension(filename)
    assert parser is not None
    assert parser.language == language


@pytest.mark.parametrize('filename', ['script.py', 'README', 'styles.css'])
def test_unsupported_extension(filename):
    assert LanguageParser.from_file_extension(filename) is None
    assert LanguageParser.language_for(filename) is None


def test_unknown_language_name():
    with pytest.raises(ValueError, match='Unsupported language'):
        LanguageParser('coffeescript')


def test_parse_source_accepts_str_and_bytes():
    parser = LanguageParser('javascript')
    from_str = parser.parse_source('const a = 1;')
    from_bytes = parser.parse_source(b'const a = 1;')
    assert str(from_str.root_node) == str(from_bytes.root_node)
    assert not from_str.root_node.has_error


def test_parse_file(tmp_path):
    path = tmp_path / 'a.ts'
    path.write_text('let n: number = 1;\n')
    tree = LanguageParser('typescript').parse_file(path)
    assert tree is not None
    assert tree.root_node.type == 'program'


def test_parse_missing_file(tmp_path):
    assert LanguageParser('javascript').parse_file(tmp_path / 'missing.js') is None


def test_syntax_errors_are_flagged():
    tree = LanguageParser('javascript').parse_source('const = ;')
    assert tree.root_node.has_error

"""Tests for URL validation."""

import pytest

from url_parser import (
    URLValidationError,
    unescape_url,
    validate_document_url,
    validate_folder_url,
    validate_wiki_url
)


class TestDocumentUrl:
    """Tests for validate_document_url."""

    @pytest.mark.parametrize('url, expected', [
        ('https://example.feishu.cn/docx/doxcnAbC123', ('docx', 'doxcnAbC123')),
        ('https://example.feishu.cn/docx/doxcnAbC123?from=share#part', ('docx', 'doxcnAbC123')),
        ('https://example.larksuite.com/wiki/wikcnXyZ', ('wiki', 'wikcnXyZ')),
        ('https://my-org.feishu.cn/docs/doccn1', ('docs', 'doccn1')),
    ])
    def test_valid(self, url, expected):
        assert validate_document_url(url) == expected

    @pytest.mark.parametrize('url', [
        'http://example.feishu.cn/docx/abc',
        'https://example.feishu.cn/sheets/abc',
        'https://example.feishu.cn/docx/',
        '',
        None,
    ])
    def test_invalid(self, url):
        with pytest.raises(URLValidationError):
            validate_document_url(url)

    def test_error_is_value_error(self):
        assert issubclass(URLValidationError, ValueError)


class TestFolderUrl:
    """Tests for validate_folder_url."""

    def test_valid(self):
        assert validate_folder_url('https://example.feishu.cn/drive/folder/fldcnA1?x=1') == 'fldcnA1'

    def test_invalid(self):
        with pytest.raises(URLValidationError):
            validate_folder_url('https://example.feishu.cn/drive/home/')


class TestWikiUrl:
    """Tests for validate_wiki_url."""

    def test_space_settings_url(self):
        assert validate_wiki_url('https://example.feishu.cn/wiki/settings/7011') == (
            'https://example.feishu.cn', '7011'
        )

    def test_node_url(self):
        assert validate_wiki_url('https://example.feishu.cn/wiki/wikcnNode') == (
            'https://example.feishu.cn', 'wikcnNode'
        )

    def test_invalid(self):
        with pytest.raises(URLValidationError):
            validate_wiki_url('https://example.feishu.cn/docx/abc')


class TestUnescapeUrl:
    """Tests for unescape_url."""

    def test_percent_encoding(self):
        assert unescape_url('https%3A%2F%2Fa.com%2Fx%3Fq%3D1') == 'https://a.com/x?q=1'

    def test_plus_becomes_space(self):
        assert unescape_url('a+b') == 'a b'

    def test_empty(self):
        assert unescape_url('') == ''

    def test_invalid_utf8_falls_back(self):
        assert unescape_url('%FF') == '\ufffd'

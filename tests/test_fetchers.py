"""Tests for the fetcher layer."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
import requests

from fetchers import ApiFetcher, FetcherError, RemoteFetchError
from lark_client import LarkApiError
from models import BlockType


@pytest.fixture
def client():
    client = MagicMock()
    client.base_url = 'https://open.feishu.cn/'
    return client


@pytest.fixture
def fetcher(base_config, client):
    return ApiFetcher(base_config, client=client)


class TestApiFetcher:
    """Tests for mapping client responses to models."""

    def test_fetch_document_fills_missing_id(self, fetcher, client):
        client.get_document.return_value = {'title': 'Doc', 'revision_id': 2}
        meta = fetcher.fetch_document('doc1')
        assert meta.document_id == 'doc1'
        assert meta.title == 'Doc'

    def test_fetch_blocks(self, fetcher, client):
        client.list_blocks.return_value = (
            [{'block_id': 'doc1', 'block_type': 1, 'children': ['t']},
             {'block_id': 't', 'block_type': 2, 'parent_id': 'doc1'}],
            'next',
            True
        )
        page = fetcher.fetch_blocks('doc1')

        assert [b.block_type for b in page.blocks] == [BlockType.PAGE, BlockType.TEXT]
        assert page.page_token == 'next'
        assert page.has_more
        client.list_blocks.assert_called_once_with('doc1', None)

    def test_fetch_resource(self, fetcher, client):
        client.download_media.return_value = (b'img', 'a.png')
        resource = fetcher.fetch_resource('tok')
        assert resource.content == b'img'
        assert resource.filename == 'a.png'

    def test_folder_and_wiki_listings(self, fetcher, client):
        client.list_folder.return_value = [{'token': 'f', 'name': 'F', 'type': 'docx'}]
        client.list_wiki_nodes.return_value = [{'space_id': 's', 'node_token': 'n', 'obj_token': 'o', 'obj_type': 'docx'}]

        assert fetcher.fetch_folder_children('fld')[0].name == 'F'
        assert fetcher.fetch_wiki_children('s', 'p')[0].obj_token == 'o'
        client.list_wiki_nodes.assert_called_once_with('s', 'p')

    def test_api_error_is_wrapped(self, fetcher, client):
        client.get_document.side_effect = LarkApiError(1770002, 'not found', '/documents')

        with pytest.raises(RemoteFetchError) as excinfo:
            fetcher.fetch_document('doc1')

        assert isinstance(excinfo.value, FetcherError)
        assert isinstance(excinfo.value.__cause__, LarkApiError)
        assert 'doc1' in str(excinfo.value)
        assert fetcher.api_errors == 1

    def test_error_count_from_many_threads(self, fetcher, client):
        client.download_media.side_effect = LarkApiError(99991400, 'rate limited', '/medias')

        def fail():
            with pytest.raises(RemoteFetchError):
                fetcher.fetch_resource('img')

        with ThreadPoolExecutor(max_workers=8) as executor:
            for future in [executor.submit(fail) for _ in range(200)]:
                future.result()

        assert fetcher.api_errors == 200

    def test_transport_error_is_wrapped(self, fetcher, client):
        client.download_file.side_effect = requests.exceptions.ConnectionError('reset')
        with pytest.raises(RemoteFetchError):
            fetcher.fetch_file('box')

    def test_bad_table_token_keeps_value_error_cause(self, fetcher, client):
        client.get_sheet_values.side_effect = ValueError('missing underscore')
        with pytest.raises(RemoteFetchError) as excinfo:
            fetcher.fetch_sheet_values('plain')
        assert isinstance(excinfo.value.__cause__, ValueError)


class TestFetchAllBlocks:
    """Tests for block pagination in BaseFetcher."""

    def test_follows_pages(self, fetcher, client):
        client.list_blocks.side_effect = [
            ([{'block_id': 'a', 'block_type': 2}], 'p1', True),
            ([{'block_id': 'b', 'block_type': 2}], '', False),
        ]
        blocks = fetcher.fetch_all_blocks('doc')

        assert [b.block_id for b in blocks] == ['a', 'b']
        assert client.list_blocks.call_args_list[1][0] == ('doc', 'p1')

    def test_stops_on_repeated_page_token(self, fetcher, client):
        client.list_blocks.return_value = ([{'block_id': 'a', 'block_type': 2}], 'same', True)
        blocks = fetcher.fetch_all_blocks('doc')

        assert len(blocks) == 2
        assert client.list_blocks.call_count == 2

    def test_error_on_later_page_propagates(self, fetcher, client):
        client.list_blocks.side_effect = [
            ([{'block_id': 'a', 'block_type': 2}], 'p1', True),
            LarkApiError(99991400, 'rate limited', '/blocks'),
        ]
        with pytest.raises(RemoteFetchError):
            fetcher.fetch_all_blocks('doc')

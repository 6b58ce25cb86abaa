"""Shared pytest fixtures."""

import pytest

from builders import FakeFetcher
from models import ExportOptions, RenderOptions


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def render_options():
    return RenderOptions()


@pytest.fixture
def export_options():
    return ExportOptions()


@pytest.fixture
def base_config():
    return {
        'feishu': {
            'app_id': 'cli_test',
            'app_secret': 'secret',
            'base_url': 'https://open.feishu.cn'
        },
        'output': {'image_dir': 'static'},
        'crawl': {'max_concurrency': 4, 'cancel_on_error': True},
        'advanced': {'request_timeout': 5, 'max_retries': 0, 'page_size': 500}
    }

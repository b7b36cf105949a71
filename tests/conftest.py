import pytest

from helpers import Clock, make_jpeg_data_url
from tabsnap.models import LiveTabView


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def jpeg_data_url():
    return make_jpeg_data_url()


@pytest.fixture
def web_tab():
    return LiveTabView(
        tab_id=42,
        window_id=1,
        title="Example Domain",
        favicon_url="https://example.com/favicon.ico",
        url="https://example.com",
        active=True,
        status="complete",
    )

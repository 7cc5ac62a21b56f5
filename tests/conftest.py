"""Shared fixtures: a fake rendering session, sample descriptors and a temp database.

No test touches the network or launches a browser.
"""

import pytest

from kent_jamaah.core import db
from kent_jamaah.mosques.errors import SourceFetchError
from kent_jamaah.mosques.registry import MosqueDescriptor, SourceKind
from kent_jamaah.mosques.renderer import RenderedPage


class FakeSession:
    """Stands in for BrowserSession: serves canned HTML per URL, records calls."""

    def __init__(self, pages=None, failing=()):
        self.pages = dict(pages or {})
        self.failing = set(failing)
        self.rendered = []
        self.entered = 0
        self.closed = 0

    def __enter__(self):
        self.entered += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed += 1

    def render(self, url):
        self.rendered.append(url)
        if url in self.failing:
            raise SourceFetchError(f"boom: {url}")
        return RenderedPage(url=url, html=self.pages.get(url, "<html><body></body></html>"))


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def html_descriptor():
    return MosqueDescriptor("alpha", "Alpha Mosque", "https://alpha.example/", "Alphaville, Kent")


@pytest.fixture
def make_descriptor():
    """Build a descriptor with overrides: make_descriptor("x", source_kind=...)."""

    def _make(mosque_id="m1", **overrides):
        fields = dict(
            id=mosque_id,
            name=f"Mosque {mosque_id}",
            url=f"https://{mosque_id}.example/",
            address="Kent",
            source_kind=SourceKind.GENERIC_HTML,
            source_params={},
        )
        fields.update(overrides)
        return MosqueDescriptor(**fields)

    return _make


@pytest.fixture
def page():
    """Wrap raw HTML as a RenderedPage without innerText."""

    def _page(html, url="https://alpha.example/"):
        return RenderedPage(url=url, html=html)

    return _page


@pytest.fixture
def database(tmp_path):
    """Fresh SQLite file per test; engine disposed afterwards."""
    db.close_db()
    db.init_db(db_url=f"sqlite:///{tmp_path / 'test.db'}")
    yield
    db.close_db()

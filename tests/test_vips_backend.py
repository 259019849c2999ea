import sys

import pytest

from vips_mcp_server import vips_backend
from vips_mcp_server.exceptions import BackendUnavailableError


@pytest.fixture(autouse=True)
def fresh_handle():
    vips_backend.reset_vips()
    yield
    vips_backend.reset_vips()


def test_missing_pyvips_raises_backend_unavailable(monkeypatch):
    monkeypatch.setitem(sys.modules, "pyvips", None)
    with pytest.raises(BackendUnavailableError, match="libvips is not available"):
        vips_backend.get_vips()


def test_handle_is_created_once():
    try:
        first = vips_backend.get_vips()
    except BackendUnavailableError as e:
        pytest.skip(str(e))
    assert vips_backend.get_vips() is first

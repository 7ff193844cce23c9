import pytest


@pytest.fixture
def write_lines(tmp_path):
    """Write ``text`` to a file under tmp_path and return its path."""

    def _write(name, text):
        p = tmp_path / name
        p.write_text(text)
        return p

    return _write

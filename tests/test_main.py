import pytest
from unittest.mock import patch

import main


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    library = tmp_path / "library"
    for title in ("Dune", "Emma"):
        (library / title).mkdir(parents=True)
        (library / title / "bookdata_500-10-20").write_bytes(b"")
    with patch("main.setup_logging"):
        yield library


@pytest.mark.asyncio
async def test_usage(capsys):
    assert await main.async_main(["main.py"]) == 1
    assert "Usage" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_list(workdir, capsys):
    assert await main.async_main(["main.py", "list", str(workdir)]) == 0

    out = capsys.readouterr().out
    assert "Dune: 500 chars" in out
    assert "2 books" in out


@pytest.mark.asyncio
async def test_delete(workdir, capsys):
    assert await main.async_main(["main.py", "delete", str(workdir), "Dune"]) == 0

    assert "Deleted 1 of 1 books" in capsys.readouterr().out
    assert not (workdir / "Dune").exists()
    assert (workdir / "Emma").exists()


@pytest.mark.asyncio
async def test_delete_missing_title(workdir, capsys):
    assert await main.async_main(["main.py", "delete", str(workdir), "Missing"]) == 2

    assert "Error deleting Missing" in capsys.readouterr().out

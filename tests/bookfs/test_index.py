"""
Tests for DirectoryIndex listing and title indexing.
"""
import shutil
import pytest
from unittest.mock import MagicMock

from src.bookfs.errors import IOFailure
from src.bookfs.handles import LocalDirectoryHandle, LocalFileHandle
from src.bookfs.index import DirectoryIndex
from src.bookfs.models import ArtifactBlob


def make_title(root, name, *files):
    directory = root / name
    directory.mkdir()
    for filename, content in files:
        (directory / filename).write_bytes(content)
    return directory


@pytest.fixture
def root(library_root):
    return LocalDirectoryHandle(library_root)


@pytest.mark.asyncio
async def test_list_entries_separates_files_and_directories(library_root, root):
    make_title(library_root, "Dune", ("bookdata_1-2-3", b""))
    (library_root / "stray.txt").write_bytes(b"")

    directories = await DirectoryIndex.list_entries(root, include_subdirectories=True)
    files = await DirectoryIndex.list_entries(root)

    assert [d.name for d in directories] == ["Dune"]
    assert [f.name for f in files] == ["stray.txt"]


@pytest.mark.asyncio
async def test_index_builds_cards_from_filenames(library_root, root):
    make_title(
        library_root, "AC~2f~DC",
        ("bookdata_1200-50-60", b"archive"),
        ("progress_70-42.5", b"{}"),
        ("cover_png", b"image"),
    )
    index = DirectoryIndex()

    await index.index_titles(await index.list_titles(root))

    card = index.title_to_card["AC/DC"]
    assert card.characters == 1200
    assert card.last_book_modified == 50
    assert card.last_book_open == 60
    assert card.last_bookmark_modified == 70
    assert card.progress == pytest.approx(0.425)
    assert card.image_path == ArtifactBlob(name="cover_png", data=b"image")
    assert card.id > 0
    assert len(index.title_to_files["AC/DC"]) == 3
    assert index.listing_count == 1


@pytest.mark.asyncio
async def test_empty_directories_are_not_titles(library_root, root):
    (library_root / "Empty").mkdir()
    index = DirectoryIndex()

    await index.index_titles(await index.list_titles(root))

    assert index.cards() == []


@pytest.mark.asyncio
async def test_reindexing_keeps_card_id(library_root, root):
    make_title(library_root, "Dune", ("bookdata_1-2-3", b""))
    index = DirectoryIndex()

    await index.index_titles(await index.list_titles(root))
    first_id = index.title_to_card["Dune"].id
    await index.index_titles(await index.list_titles(root))

    assert index.title_to_card["Dune"].id == first_id


@pytest.mark.asyncio
async def test_failed_indexing_clears_index(library_root, root):
    make_title(library_root, "Dune", ("bookdata_1-2-3", b""))
    index = DirectoryIndex()
    await index.index_titles(await index.list_titles(root))

    broken = LocalDirectoryHandle(library_root / "Emma")
    broken.values = MagicMock(side_effect=OSError("I/O error"))

    with pytest.raises(IOFailure, match="I/O error"):
        await index.index_titles([broken])

    assert index.title_to_card == {}
    assert not index.data_list_fetched


@pytest.mark.asyncio
async def test_resolve_files_for_missing_title(root):
    index = DirectoryIndex()

    assert await index.resolve_files_for_title(root, "Unknown") == []
    assert "Unknown" not in index.title_to_card


@pytest.mark.asyncio
async def test_resolve_files_indexes_single_title(library_root, root):
    make_title(library_root, "Dune", ("bookdata_1-2-3", b""))
    make_title(library_root, "Emma", ("bookdata_4-5-6", b""))
    index = DirectoryIndex()

    files = await index.resolve_files_for_title(root, "Dune")

    assert [f.name for f in files] == ["bookdata_1-2-3"]
    assert list(index.title_to_card) == ["Dune"]
    assert index.listing_count == 0


@pytest.mark.asyncio
async def test_cached_files_are_served_without_lookup(library_root, root):
    make_title(library_root, "Dune", ("bookdata_1-2-3", b""))
    index = DirectoryIndex()
    await index.resolve_files_for_title(root, "Dune")

    (library_root / "Dune" / "progress_1-50").write_bytes(b"{}")

    assert len(await index.resolve_files_for_title(root, "Dune")) == 1


@pytest.mark.asyncio
async def test_disabled_cache_always_looks_up(library_root, root):
    make_title(library_root, "Dune", ("bookdata_1-2-3", b""))
    index = DirectoryIndex(cache_storage_data=False)
    await index.resolve_files_for_title(root, "Dune")

    (library_root / "Dune" / "progress_1-50").write_bytes(b"{}")

    assert len(await index.resolve_files_for_title(root, "Dune")) == 2


def test_add_card_and_purge():
    index = DirectoryIndex()

    card = index.add_card("Dune", characters=10)
    same = index.add_card("Dune", progress=0.5)

    assert same is card
    assert card.characters == 10
    assert card.progress == 0.5

    index.purge("Dune")
    assert index.cards() == []


def test_partial_clear_keeps_cards():
    index = DirectoryIndex()
    index.add_card("Dune")
    index.title_to_files["Dune"] = []
    index.data_list_fetched = True

    index.clear(clear_all=False)

    assert index.title_to_files == {}
    assert "Dune" in index.title_to_card
    assert index.data_list_fetched

    index.clear()
    assert index.title_to_card == {}
    assert not index.data_list_fetched


@pytest.mark.asyncio
async def test_unreadable_cover_fails_indexing(library_root, root, monkeypatch):
    make_title(library_root, "Dune", ("bookdata_1-2-3", b""), ("cover_png", b"image"))
    index = DirectoryIndex()

    async def unreadable(self):
        raise PermissionError("cover locked")

    monkeypatch.setattr(LocalFileHandle, "get_file", unreadable)

    with pytest.raises(IOFailure, match="cover locked"):
        await index.index_titles(await index.list_titles(root))

    assert index.cards() == []


@pytest.mark.asyncio
async def test_disabled_cache_forgets_removed_directory(library_root, root):
    make_title(library_root, "Dune", ("bookdata_1-2-3", b""))
    index = DirectoryIndex(cache_storage_data=False)
    await index.resolve_files_for_title(root, "Dune")
    card_id = index.title_to_card["Dune"].id

    shutil.rmtree(library_root / "Dune")

    assert await index.resolve_files_for_title(root, "Dune") == []
    assert "Dune" not in index.title_to_directory
    assert "Dune" not in index.title_to_files
    assert index.title_to_card["Dune"].id == card_id


@pytest.mark.asyncio
async def test_disabled_cache_records_emptied_directory(library_root, root):
    directory = make_title(library_root, "Dune", ("bookdata_1-2-3", b""))
    index = DirectoryIndex(cache_storage_data=False)
    await index.resolve_files_for_title(root, "Dune")

    (directory / "bookdata_1-2-3").unlink()

    assert await index.resolve_files_for_title(root, "Dune") == []
    assert index.title_to_files["Dune"] == []
    assert index.title_to_directory["Dune"].path == directory
    assert "Dune" in index.title_to_card


@pytest.mark.asyncio
async def test_listing_still_skips_empty_directories(library_root, root):
    (library_root / "Empty").mkdir()
    index = DirectoryIndex()

    await index.index_titles(await index.list_titles(root))

    assert index.title_to_files == {}

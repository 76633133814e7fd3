import os

import pytest

from yingge.errors import InvalidInput, IoFailure
from yingge.models import Asset, new_id
from yingge.services import folders
from yingge.services.folders import merge_folders, scan_folders


def _asset(library_id, folder, rel):
    return Asset(
        id=new_id(), library_id=library_id, file_name="a.png", original_name="a.png", relative_path=rel,
        file_type="image", mime_type="image/png", file_size=1, file_hash="0" * 64,
        description="", ai_description="", folder_path=folder,
    )


class TestMerge:
    def test_union_of_db_and_disk(self):
        result = merge_folders({"/": 2, "/a": 3}, ["/a", "/b"])
        assert [(f.path, f.name, f.asset_count) for f in result] == [
            ("/", "/", 2), ("/a", "a", 3), ("/b", "b", 0),
        ]

    def test_paths_normalized_before_merge(self):
        result = merge_folders({"/a/": 1, "a": 2}, ["a//"])
        assert [(f.path, f.asset_count) for f in result] == [("/a", 3)]

    def test_scan_prunes_hidden(self, tmp_path):
        (tmp_path / "chars" / "heroes").mkdir(parents=True)
        (tmp_path / ".thumbnails").mkdir()
        (tmp_path / "chars" / ".cache").mkdir()
        assert scan_folders(str(tmp_path)) == {"/chars", "/chars/heroes"}

    def test_scan_missing_root(self, tmp_path):
        assert scan_folders(str(tmp_path / "absent")) == set()


class TestFolderOps:
    @pytest.mark.asyncio
    async def test_get_folders(self, store, library):
        await store.insert_asset(_asset(library.id, "/virtual", "virtual/1.png"))
        result = {f.path: f.asset_count for f in await folders.get_folders(store, library.id)}
        assert result["/virtual"] == 1
        assert result["/assets"] == 0
        assert "/.thumbnails" not in result

    @pytest.mark.asyncio
    async def test_create_nested(self, store, library, library_root):
        info = await folders.create_folder(store, library.id, "heroes", "/chars")
        assert info.path == "/chars/heroes"
        assert (library_root / "chars" / "heroes").is_dir()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "  ", "..", ".hidden", "a/b", "a\\b"])
    async def test_create_invalid_name(self, store, library, name):
        with pytest.raises(InvalidInput):
            await folders.create_folder(store, library.id, name)

    @pytest.mark.asyncio
    async def test_rename_moves_descendants(self, store, library, library_root):
        await folders.create_folder(store, library.id, "chars")
        (library_root / "chars" / "heroes").mkdir()
        top = await store.insert_asset(_asset(library.id, "/chars", "chars/1.png"))
        deep = await store.insert_asset(_asset(library.id, "/chars/heroes", "chars/heroes/2.png"))
        other = await store.insert_asset(_asset(library.id, "/characters", "characters/3.png"))

        info = await folders.rename_folder(store, library.id, "/chars", "actors")
        assert (info.path, info.name, info.asset_count) == ("/actors", "actors", 1)
        assert (library_root / "actors" / "heroes").is_dir()
        assert not (library_root / "chars").exists()

        top, deep, other = [await store.get_asset(a.id) for a in (top, deep, other)]
        assert (top.folder_path, top.relative_path) == ("/actors", "actors/1.png")
        assert (deep.folder_path, deep.relative_path) == ("/actors/heroes", "actors/heroes/2.png")
        assert (other.folder_path, other.relative_path) == ("/characters", "characters/3.png")

    @pytest.mark.asyncio
    async def test_rename_root_rejected(self, store, library):
        with pytest.raises(InvalidInput):
            await folders.rename_folder(store, library.id, "/", "x")

    @pytest.mark.asyncio
    async def test_rename_onto_existing(self, store, library):
        await folders.create_folder(store, library.id, "a")
        await folders.create_folder(store, library.id, "b")
        with pytest.raises(InvalidInput):
            await folders.rename_folder(store, library.id, "/a", "b")

    @pytest.mark.asyncio
    async def test_virtual_folder_renames_rows_only(self, store, library):
        asset = await store.insert_asset(_asset(library.id, "/ghost", "ghost/1.png"))
        await folders.rename_folder(store, library.id, "/ghost", "spirit")
        assert (await store.get_asset(asset.id)).folder_path == "/spirit"

    @pytest.mark.asyncio
    async def test_filesystem_failure_leaves_rows(self, store, library, monkeypatch):
        await folders.create_folder(store, library.id, "chars")
        asset = await store.insert_asset(_asset(library.id, "/chars", "chars/1.png"))

        def boom(src, dst):
            raise PermissionError("read-only")

        monkeypatch.setattr(os, "rename", boom)
        with pytest.raises(IoFailure):
            await folders.rename_folder(store, library.id, "/chars", "actors")

        fresh = await store.get_asset(asset.id)
        assert (fresh.folder_path, fresh.relative_path) == ("/chars", "chars/1.png")

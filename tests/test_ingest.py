import hashlib

import pytest

from conftest import make_image
from yingge.services import ingest
from yingge.services.ingest import import_assets


class TestImport:
    @pytest.mark.asyncio
    async def test_image_import(self, store, library, library_root, source_dir, limiter):
        src = make_image(source_dir / "Hero.PNG", size=(600, 300))
        [asset] = await import_assets(store, library.id, [str(src)], "/chars", limiter=limiter)

        assert asset.file_name == asset.original_name == "Hero.PNG"
        assert (asset.file_type, asset.mime_type) == ("image", "image/png")
        assert (asset.width, asset.height) == (600, 300)
        assert asset.file_size == src.stat().st_size
        assert asset.file_hash == hashlib.sha256(src.read_bytes()).hexdigest()
        assert asset.folder_path == "/chars"
        assert asset.relative_path == f"chars/{asset.id}.PNG"
        assert (library_root / asset.relative_path).read_bytes() == src.read_bytes()
        assert asset.thumbnail_path == f".thumbnails/{asset.id}.png"
        assert (library_root / asset.thumbnail_path).is_file()

    @pytest.mark.asyncio
    async def test_non_image_has_no_thumbnail(self, store, library, source_dir, limiter):
        src = source_dir / "theme.mp3"
        src.write_bytes(b"ID3 not really audio")
        [asset] = await import_assets(store, library.id, [str(src)], limiter=limiter)
        assert asset.file_type == "audio"
        assert asset.thumbnail_path is None
        assert asset.width is None
        assert asset.relative_path == f"{asset.id}.mp3"

    @pytest.mark.asyncio
    async def test_missing_paths_skipped(self, store, library, source_dir, limiter):
        src = make_image(source_dir / "a.png")
        result = await import_assets(store, library.id, [str(source_dir / "gone.png"), str(src)], limiter=limiter)
        assert [a.file_name for a in result] == ["a.png"]

    @pytest.mark.asyncio
    async def test_thumbnail_failure_is_not_fatal(self, store, library, source_dir, limiter, monkeypatch):
        def broken(*args, **kwargs):
            return None

        monkeypatch.setattr(ingest, "try_generate_thumbnail", broken)
        src = make_image(source_dir / "a.png")
        [asset] = await import_assets(store, library.id, [str(src)], limiter=limiter)
        assert asset.thumbnail_path is None
        assert (await store.get_asset(asset.id)).file_type == "image"

    @pytest.mark.asyncio
    async def test_corrupt_image_still_imported(self, store, library, source_dir, limiter):
        src = source_dir / "corrupt.png"
        src.write_bytes(b"not a png at all")
        [asset] = await import_assets(store, library.id, [str(src)], limiter=limiter)
        assert asset.thumbnail_path is None
        assert asset.width is None

    @pytest.mark.asyncio
    async def test_same_bytes_same_hash(self, store, library, source_dir, limiter):
        a = make_image(source_dir / "a.png")
        b = source_dir / "b.png"
        b.write_bytes(a.read_bytes())
        first, second = await import_assets(store, library.id, [str(a), str(b)], limiter=limiter)
        assert first.file_hash == second.file_hash
        assert first.relative_path != second.relative_path

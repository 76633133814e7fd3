"""
Derived assets: run a generator over stored assets and register every result as a
brand-new Asset row (own id, hash and size). Sources are never modified.
"""
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from PIL import Image

from yingge.errors import InvalidInput, IoFailure
from yingge.models import Asset, Library, new_id
from yingge.schemas import AssetOut, CompressResult, SpritesheetResult
from yingge.services.descriptor import render_descriptor
from yingge.services.identity import identify
from yingge.services.image_processor import ImageProcessor, load_image, output_format
from yingge.services.library_store import LibraryStore
from yingge.services.spritesheet import merge_spritesheet, split_image_grid
from yingge.services.thumbnail import THUMBNAIL_SIZE, try_generate_thumbnail
from yingge.utils.paths import DERIVED_DIR, derived_output_dir, relative_to_library, resolve_in_library
from yingge.utils.workers import CpuLimiter

logger = logging.getLogger(__name__)


def _write_output(data: bytes, path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise IoFailure(f"Cannot write {path}: {e}", where="derived.write") from e


def _stem(file_name: str) -> str:
    return Path(file_name).stem or file_name


class DerivedAssetService:
    def __init__(self, store: LibraryStore, limiter: Optional[CpuLimiter] = None, thumb_size: int = THUMBNAIL_SIZE):
        self.store = store
        self.limiter = limiter or CpuLimiter()
        self.thumb_size = thumb_size

    async def _source(self, asset_id: str) -> Tuple[Asset, Library, Path]:
        asset = await self.store.get_asset(asset_id)
        library = await self.store.get_library(asset.library_id)
        return asset, library, resolve_in_library(library.root_path, asset.relative_path)

    def _persist(self, library: Library, asset_id: str, data: bytes, ext: str, output_dir: Path) -> Tuple[str, Optional[str]]:
        """Write the artifact and its thumbnail; returns (relative_path, thumbnail_path)."""
        output_path = output_dir / f"{asset_id}.{ext}"
        _write_output(data, output_path)
        thumb = try_generate_thumbnail(output_path, library.root_path, asset_id, self.thumb_size)
        return relative_to_library(library.root_path, output_path), thumb

    async def _register(self, library: Library, data: bytes, ext: str, size: Tuple[int, int], *,
                        file_name: str, original_name: str, folder_path: str, description: str = "",
                        ai_description: str = "", derived_from: Optional[str] = None,
                        output_dir: Optional[Path] = None) -> Asset:
        asset_id = new_id()
        output_dir = output_dir or Path(library.root_path) / DERIVED_DIR
        relative_path, thumb = await self.limiter.run(self._persist, library, asset_id, data, ext, output_dir)
        ident = identify(data, ext)
        asset = Asset(
            id=asset_id,
            library_id=library.id,
            file_name=file_name,
            original_name=original_name,
            relative_path=relative_path,
            file_type=ident.category,
            mime_type=ident.mime,
            file_size=len(data),
            file_hash=ident.hash,
            width=size[0],
            height=size[1],
            description=description,
            ai_description=ai_description,
            thumbnail_path=thumb,
            folder_path=folder_path,
            derived_from=derived_from,
        )
        return await self.store.insert_asset(asset)

    # ---------- Background matte ----------
    async def remove_background(self, asset_id: str, target_color: Sequence[int], tolerance: int) -> Asset:
        source, library, path = await self._source(asset_id)

        def work():
            out = ImageProcessor.remove_background_color_key(load_image(path), target_color, tolerance)
            return ImageProcessor.encode(out, "png"), out.size

        data, size = await self.limiter.run(work)
        saved = await self._register(
            library, data, "png", size,
            file_name=f"{_stem(source.file_name)}_nobg.png",
            original_name=source.original_name,
            folder_path=source.folder_path,
            description=f"Background removed from {source.file_name}",
            derived_from=source.id,
        )
        logger.info("[derived] background removed: %s -> %s", source.id, saved.id)
        return saved

    # ---------- Spritesheets ----------
    async def merge_spritesheet(self, asset_ids: Sequence[str], columns: int, padding: int, output_name: str,
                                descriptor_format: str = "json") -> SpritesheetResult:
        if not asset_ids:
            raise InvalidInput("No assets selected", where="derived.spritesheet")
        output_name = (output_name or "").strip()
        if not output_name or "/" in output_name or "\\" in output_name or output_name.startswith("."):
            raise InvalidInput(f"Invalid output name: {output_name!r}", where="derived.spritesheet")

        sources: List[Tuple[str, Path]] = []
        first: Optional[Asset] = None
        library: Optional[Library] = None
        for aid in asset_ids:
            asset, lib, path = await self._source(aid)
            if first is None:
                first, library = asset, lib
            elif asset.library_id != first.library_id:
                raise InvalidInput("All frames must come from the same library", where="derived.spritesheet")
            sources.append((asset.file_name, path))

        image_filename = f"{output_name}.png"

        def work():
            frames = [(name, load_image(p)) for name, p in sources]
            sheet, info = merge_spritesheet(frames, columns, padding)
            descriptor, desc_ext = render_descriptor(descriptor_format, info, image_filename)
            _write_output(descriptor.encode("utf-8"), Path(library.root_path) / DERIVED_DIR / f"{output_name}.{desc_ext}")
            return ImageProcessor.encode(sheet, "png"), info, descriptor

        data, info, descriptor = await self.limiter.run(work)
        saved = await self._register(
            library, data, "png", (info.width, info.height),
            file_name=image_filename,
            original_name=image_filename,
            folder_path=first.folder_path,
            description=f"Sprite sheet with {len(info.frames)} frames",
            derived_from=first.id,
        )
        logger.info("[derived] spritesheet %s with %d frames", saved.id, len(info.frames))
        return SpritesheetResult(image_asset=AssetOut.model_validate(saved), descriptor_content=descriptor)

    async def split_image(self, asset_id: str, rows: int, cols: int) -> List[Asset]:
        if rows <= 0 or cols <= 0:
            raise InvalidInput(f"Rows and cols must be positive, got {rows}x{cols}", where="derived.split")
        source, library, path = await self._source(asset_id)

        def work():
            return [(ImageProcessor.encode(part, "png"), part.size) for part in split_image_grid(load_image(path), rows, cols)]

        parts = await self.limiter.run(work)
        base = _stem(source.file_name)
        results = []
        for i, (data, size) in enumerate(parts):
            results.append(await self._register(
                library, data, "png", size,
                file_name=f"{base}_{i}.png",
                original_name=source.original_name,
                folder_path=source.folder_path,
                description=f"Split from {source.file_name} (part {i + 1})",
                derived_from=source.id,
            ))
        logger.info("[derived] split %s into %d parts", source.id, len(results))
        return results

    # ---------- Compression ----------
    async def compress_image(self, asset_id: str, max_width: Optional[int] = None, max_height: Optional[int] = None,
                             quality: int = 80, fmt: str = "jpeg", suffix: str = "_compressed") -> CompressResult:
        if not 1 <= quality <= 100:
            raise InvalidInput(f"Quality must be within 1..100, got {quality}", where="derived.compress")
        _, ext, _ = output_format(fmt)
        source, library, path = await self._source(asset_id)
        if not path.exists():
            raise IoFailure(f"Source file not found: {path}", where="derived.compress")

        def work():
            img: Image.Image = ImageProcessor.compress(load_image(path), max_width, max_height)
            return ImageProcessor.encode(img, fmt, quality), img.size

        data, size = await self.limiter.run(work)
        saved = await self._register(
            library, data, ext, size,
            file_name=f"{_stem(source.file_name)}{suffix}.{ext}",
            original_name=source.original_name,
            folder_path=source.folder_path,
            description=source.description,
            ai_description=source.ai_description,
            derived_from=source.id,
            output_dir=derived_output_dir(library.root_path, source.folder_path),
        )

        tags = await self.store.get_asset_tags(source.id)
        if tags:
            await self.store.assign_tags(saved.id, [t.id for t in tags])

        original_size = source.file_size
        compressed_size = len(data)
        ratio = 1 - compressed_size / original_size if original_size > 0 else 0.0
        logger.info("[derived] compressed %s: %d -> %d bytes", source.id, original_size, compressed_size)
        return CompressResult(
            asset=AssetOut.model_validate(saved),
            original_size=original_size,
            compressed_size=compressed_size,
            compression_ratio=ratio,
        )

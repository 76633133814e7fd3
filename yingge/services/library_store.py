import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import String, delete, func, literal, or_, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from yingge.errors import InvalidInput, IoFailure, NotFound
from yingge.models import AiConfig, Asset, AssetTag, Embedding, Library, Tag
from yingge.schemas import AssetOut, PaginatedAssets, TagWithCount
from yingge.utils.paths import ensure_library_dirs, folder_to_relative, normalize_folder_path

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "name": Asset.file_name,
    "size": Asset.file_size,
    "date": Asset.imported_at,
}
DEFAULT_TAG_COLOR = "#808080"


def fts_phrase(query: str) -> str:
    """Quote a user query as a single FTS5 phrase."""
    return '"' + query.replace('"', '""') + '"'


class LibraryStore:
    """Canonical records of libraries, assets, tags, embeddings and AI config."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ---------- Libraries ----------
    async def create_library(self, name: str, root_path: str) -> Library:
        if not name.strip():
            raise InvalidInput("Library name must not be empty", where="store.library")
        ensure_library_dirs(root_path)
        library = Library(name=name, root_path=root_path)
        self.session.add(library)
        await self.session.commit()
        await self.session.refresh(library)
        return library

    async def list_libraries(self) -> List[Library]:
        res = await self.session.execute(select(Library).order_by(Library.updated_at.desc()))
        return list(res.scalars().all())

    async def get_library(self, library_id: str) -> Library:
        library = await self.session.get(Library, library_id, populate_existing=True)
        if library is None:
            raise NotFound(f"Library {library_id} not found", where="store.library")
        return library

    async def delete_library(self, library_id: str) -> None:
        await self.session.execute(
            delete(Library).where(Library.id == library_id).execution_options(synchronize_session=False)
        )
        await self.session.commit()

    # ---------- Assets ----------
    async def insert_asset(self, asset: Asset) -> Asset:
        asset.folder_path = normalize_folder_path(asset.folder_path)
        self.session.add(asset)
        await self.session.commit()
        await self.session.refresh(asset)
        return asset

    async def get_asset(self, asset_id: str) -> Asset:
        asset = await self.session.get(Asset, asset_id, populate_existing=True)
        if asset is None:
            raise NotFound(f"Asset {asset_id} not found", where="store.asset")
        return asset

    async def get_assets(self, library_id: str, folder_path: Optional[str] = None, file_type: Optional[str] = None,
                         page: int = 1, page_size: int = 50, sort_by: str = "date",
                         sort_order: str = "desc") -> PaginatedAssets:
        conditions = [Asset.library_id == library_id]
        if folder_path is not None:
            conditions.append(Asset.folder_path == normalize_folder_path(folder_path))
        if file_type is not None:
            conditions.append(Asset.file_type == file_type)

        column = SORT_COLUMNS.get(sort_by, Asset.imported_at)
        order = column.asc() if sort_order == "asc" else column.desc()

        total = await self.session.scalar(select(func.count()).select_from(Asset).where(*conditions))
        res = await self.session.execute(
            select(Asset).where(*conditions).order_by(order, Asset.id)
            .execution_options(populate_existing=True)
            .limit(page_size).offset(max(page - 1, 0) * page_size)
        )
        return PaginatedAssets(
            assets=[AssetOut.model_validate(a) for a in res.scalars().all()],
            total=total or 0,
            page=page,
            page_size=page_size,
        )

    async def rename_asset(self, asset_id: str, new_name: str) -> None:
        if not new_name.strip():
            raise InvalidInput("Asset name must not be empty", where="store.asset")
        await self._update_asset(asset_id, file_name=new_name)

    async def update_asset_description(self, asset_id: str, description: str) -> None:
        await self._update_asset(asset_id, description=description)

    async def update_ai_description(self, asset_id: str, ai_description: str) -> None:
        await self._update_asset(asset_id, ai_description=ai_description)

    async def _update_asset(self, asset_id: str, **values) -> None:
        res = await self.session.execute(
            update(Asset).where(Asset.id == asset_id).values(updated_at=func.now(), **values)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        if res.rowcount == 0:
            raise NotFound(f"Asset {asset_id} not found", where="store.asset")

    async def delete_assets(self, ids: Sequence[str]) -> int:
        if not ids:
            return 0
        res = await self.session.execute(
            delete(Asset).where(Asset.id.in_(list(ids))).execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return res.rowcount

    async def move_assets(self, ids: Sequence[str], target_folder: str) -> int:
        if not ids:
            return 0
        res = await self.session.execute(
            update(Asset).where(Asset.id.in_(list(ids)))
            .values(folder_path=normalize_folder_path(target_folder), updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return res.rowcount

    # ---------- Folders ----------
    async def folder_counts(self, library_id: str) -> Dict[str, int]:
        res = await self.session.execute(
            select(Asset.folder_path, func.count())
            .where(Asset.library_id == library_id)
            .group_by(Asset.folder_path)
        )
        counts: Dict[str, int] = {}
        for path, count in res.all():
            key = normalize_folder_path(path)
            counts[key] = counts.get(key, 0) + count
        return counts

    async def rename_folder_rows(self, library_id: str, old_path: str, new_path: str) -> int:
        """Re-home every asset under ``old_path`` (the folder and its descendants)."""
        old_path, new_path = normalize_folder_path(old_path), normalize_folder_path(new_path)
        old_rel, new_rel = folder_to_relative(old_path), folder_to_relative(new_path)

        res = await self.session.execute(
            update(Asset)
            .where(
                Asset.library_id == library_id,
                or_(Asset.folder_path == old_path, Asset.folder_path.startswith(old_path + "/", autoescape=True)),
            )
            .values(
                folder_path=literal(new_path, String).concat(func.substr(Asset.folder_path, len(old_path) + 1)),
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(
            update(Asset)
            .where(Asset.library_id == library_id, Asset.relative_path.startswith(old_rel + "/", autoescape=True))
            .values(relative_path=literal(new_rel, String).concat(func.substr(Asset.relative_path, len(old_rel) + 1)))
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return res.rowcount

    # ---------- Tags ----------
    async def create_tag(self, library_id: str, name: str, color: Optional[str] = None,
                         category: Optional[str] = None, is_ai: bool = False) -> Tag:
        if not name.strip():
            raise InvalidInput("Tag name must not be empty", where="store.tag")
        await self._ensure_tag_name_free(library_id, name)
        tag = Tag(library_id=library_id, name=name, color=color or DEFAULT_TAG_COLOR,
                  category=category or "", is_ai=is_ai)
        self.session.add(tag)
        await self._commit_tag(name)
        await self.session.refresh(tag)
        return tag

    async def _ensure_tag_name_free(self, library_id: str, name: str, exclude_id: Optional[str] = None) -> None:
        stmt = select(Tag.id).where(Tag.library_id == library_id, Tag.name == name)
        if exclude_id is not None:
            stmt = stmt.where(Tag.id != exclude_id)
        if await self.session.scalar(stmt.limit(1)) is not None:
            raise InvalidInput(f"Tag {name!r} already exists", where="store.tag")

    async def _commit_tag(self, name: str) -> None:
        # a concurrent writer can still take the name between the check and the commit
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise InvalidInput(f"Tag {name!r} already exists", where="store.tag") from e

    async def get_or_create_tag(self, library_id: str, name: str, is_ai: bool = False,
                                category: Optional[str] = None) -> Tag:
        existing = await self.session.scalar(select(Tag).where(Tag.library_id == library_id, Tag.name == name))
        if existing is not None:
            return existing
        return await self.create_tag(library_id, name, category=category, is_ai=is_ai)

    async def list_tags(self, library_id: str, category: Optional[str] = None) -> List[TagWithCount]:
        stmt = (
            select(Tag, func.count(AssetTag.asset_id))
            .outerjoin(AssetTag, AssetTag.tag_id == Tag.id)
            .where(Tag.library_id == library_id)
            .group_by(Tag.id)
            .order_by(Tag.name)
            .execution_options(populate_existing=True)
        )
        if category is not None:
            stmt = stmt.where(Tag.category == category)
        res = await self.session.execute(stmt)
        return [
            TagWithCount(
                id=tag.id, library_id=tag.library_id, name=tag.name, color=tag.color,
                category=tag.category, is_ai=tag.is_ai, created_at=tag.created_at, asset_count=count,
            )
            for tag, count in res.all()
        ]

    async def get_tag(self, tag_id: str) -> Tag:
        tag = await self.session.get(Tag, tag_id, populate_existing=True)
        if tag is None:
            raise NotFound(f"Tag {tag_id} not found", where="store.tag")
        return tag

    async def rename_tag(self, tag_id: str, new_name: str) -> None:
        if not new_name.strip():
            raise InvalidInput("Tag name must not be empty", where="store.tag")
        tag = await self.get_tag(tag_id)
        await self._ensure_tag_name_free(tag.library_id, new_name, exclude_id=tag_id)
        await self.session.execute(
            update(Tag).where(Tag.id == tag_id).values(name=new_name).execution_options(synchronize_session=False)
        )
        await self._commit_tag(new_name)

    async def delete_tag(self, tag_id: str) -> None:
        res = await self.session.execute(
            delete(Tag).where(Tag.id == tag_id).execution_options(synchronize_session=False)
        )
        await self.session.commit()
        if res.rowcount == 0:
            raise NotFound(f"Tag {tag_id} not found", where="store.tag")

    async def assign_tags(self, asset_id: str, tag_ids: Iterable[str], confidence: float = 1.0) -> None:
        """Link tags to an asset; existing links keep their original confidence.

        Every tag must belong to the asset's library.
        """
        tag_ids = list(dict.fromkeys(tag_ids))
        if not tag_ids:
            return
        asset = await self.get_asset(asset_id)
        known = await self.session.execute(
            select(Tag.id).where(Tag.library_id == asset.library_id, Tag.id.in_(tag_ids))
        )
        missing = set(tag_ids) - set(known.scalars().all())
        if missing:
            raise NotFound(f"Tags not found in library: {', '.join(sorted(missing))}", where="store.tag")
        res = await self.session.execute(
            select(AssetTag.tag_id).where(AssetTag.asset_id == asset_id, AssetTag.tag_id.in_(tag_ids))
        )
        linked = set(res.scalars().all())
        for tag_id in tag_ids:
            if tag_id not in linked:
                self.session.add(AssetTag(asset_id=asset_id, tag_id=tag_id, confidence=confidence))
        await self.session.commit()

    async def remove_tags(self, asset_id: str, tag_ids: Iterable[str]) -> None:
        tag_ids = list(tag_ids)
        if not tag_ids:
            return
        await self.session.execute(
            delete(AssetTag).where(AssetTag.asset_id == asset_id, AssetTag.tag_id.in_(tag_ids))
        )
        await self.session.commit()

    async def get_asset_tags(self, asset_id: str) -> List[Tag]:
        res = await self.session.execute(
            select(Tag).join(AssetTag, AssetTag.tag_id == Tag.id)
            .where(AssetTag.asset_id == asset_id).order_by(Tag.name)
            .execution_options(populate_existing=True)
        )
        return list(res.scalars().all())

    # ---------- Search ----------
    async def search_keyword(self, library_id: str, query: str, tag_ids: Optional[Sequence[str]] = None,
                             file_type: Optional[str] = None, page: int = 1, page_size: int = 50) -> PaginatedAssets:
        empty = PaginatedAssets(assets=[], total=0, page=page, page_size=page_size)
        if tag_ids:
            # TODO: combine the FTS match with the asset_tags filter; until then tag-filtered keyword search is empty
            logger.warning("[search] tag-filtered keyword search is not supported; returning no results")
            return empty
        if not query.strip():
            return empty

        where = "assets.library_id = :library_id AND assets_fts MATCH :query"
        params = {"library_id": library_id, "query": fts_phrase(query)}
        if file_type is not None:
            where += " AND assets.file_type = :file_type"
            params["file_type"] = file_type
        base = f"FROM assets JOIN assets_fts ON assets.rowid = assets_fts.rowid WHERE {where}"

        total = await self.session.scalar(text(f"SELECT COUNT(*) {base}"), params)
        id_rows = await self.session.execute(
            text(f"SELECT assets.id {base} ORDER BY assets.imported_at DESC, assets.id LIMIT :limit OFFSET :offset"),
            dict(params, limit=page_size, offset=max(page - 1, 0) * page_size),
        )
        ids = [row[0] for row in id_rows.all()]
        assets: List[Asset] = []
        if ids:
            res = await self.session.execute(
                select(Asset).where(Asset.id.in_(ids)).execution_options(populate_existing=True)
            )
            by_id = {a.id: a for a in res.scalars().all()}
            assets = [by_id[i] for i in ids if i in by_id]
        return PaginatedAssets(
            assets=[AssetOut.model_validate(a) for a in assets],
            total=total or 0,
            page=page,
            page_size=page_size,
        )

    async def search_by_tags(self, library_id: str, tag_ids: Sequence[str], match_all: bool = False) -> List[Asset]:
        tag_ids = list(dict.fromkeys(tag_ids))
        if not tag_ids:
            return []
        stmt = (
            select(Asset)
            .join(AssetTag, AssetTag.asset_id == Asset.id)
            .where(Asset.library_id == library_id, AssetTag.tag_id.in_(tag_ids))
            .group_by(Asset.id)
            .order_by(Asset.imported_at.desc(), Asset.id)
            .execution_options(populate_existing=True)
        )
        if match_all:
            stmt = stmt.having(func.count(func.distinct(AssetTag.tag_id)) == len(tag_ids))
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    # ---------- Embeddings ----------
    async def save_embedding(self, asset_id: str, model: str, vector: bytes) -> None:
        """One row per (asset, model); saving again replaces the vector."""
        existing = await self.session.scalar(
            select(Embedding).where(Embedding.asset_id == asset_id, Embedding.model == model)
        )
        if existing is not None:
            existing.vector = vector
        else:
            if await self.session.scalar(select(Asset.id).where(Asset.id == asset_id)) is None:
                raise NotFound(f"Asset {asset_id} not found", where="store.embedding")
            self.session.add(Embedding(asset_id=asset_id, model=model, vector=vector))
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise IoFailure(f"Cannot save embedding for {asset_id}: {e}", where="store.embedding") from e

    async def get_all_embeddings(self, library_id: str, model: str) -> List[Tuple[str, bytes]]:
        res = await self.session.execute(
            select(Embedding.asset_id, Embedding.vector)
            .join(Asset, Asset.id == Embedding.asset_id)
            .where(Asset.library_id == library_id, Embedding.model == model)
            .order_by(Embedding.created_at, Embedding.id)
        )
        return [(asset_id, vector) for asset_id, vector in res.all()]

    # ---------- AI config ----------
    async def save_ai_config(self, config: AiConfig) -> AiConfig:
        await self.session.execute(update(AiConfig).values(is_active=False))
        config.is_active = True
        self.session.add(config)
        await self.session.commit()
        await self.session.refresh(config)
        return config

    async def get_active_ai_config(self) -> Optional[AiConfig]:
        return await self.session.scalar(select(AiConfig).where(AiConfig.is_active.is_(True)).limit(1))

import pytest
from sqlalchemy import func, select

from yingge.errors import InvalidInput, NotFound
from yingge.models import AiConfig, Asset, AssetTag, Embedding, new_id
from yingge.services.embedding import f32_vec_to_bytes


def _asset(library_id, name="hero.png", folder="/", description="", file_type="image"):
    asset_id = new_id()
    return Asset(
        id=asset_id,
        library_id=library_id,
        file_name=name,
        original_name=name,
        relative_path=f"{asset_id}.png",
        file_type=file_type,
        mime_type="image/png",
        file_size=10,
        file_hash="0" * 64,
        description=description,
        ai_description="",
        folder_path=folder,
    )


class TestLibraries:
    @pytest.mark.asyncio
    async def test_create_makes_layout(self, store, library, library_root):
        assert (library_root / "assets").is_dir()
        assert (library_root / ".thumbnails").is_dir()
        assert [lib.id for lib in await store.list_libraries()] == [library.id]

    @pytest.mark.asyncio
    async def test_blank_name(self, store, tmp_path):
        with pytest.raises(InvalidInput):
            await store.create_library("  ", str(tmp_path / "x"))

    @pytest.mark.asyncio
    async def test_missing(self, store):
        with pytest.raises(NotFound):
            await store.get_library("nope")

    @pytest.mark.asyncio
    async def test_delete_cascades(self, store, session, library):
        asset = await store.insert_asset(_asset(library.id))
        tag = await store.create_tag(library.id, "hero")
        await store.assign_tags(asset.id, [tag.id])
        await store.save_embedding(asset.id, "m", f32_vec_to_bytes([1.0]))

        await store.delete_library(library.id)
        for model in (Asset, AssetTag, Embedding):
            assert await session.scalar(select(func.count()).select_from(model)) == 0


class TestAssets:
    @pytest.mark.asyncio
    async def test_folder_path_normalized(self, store, library):
        asset = await store.insert_asset(_asset(library.id, folder="chars//heroes/"))
        assert asset.folder_path == "/chars/heroes"

    @pytest.mark.asyncio
    async def test_pagination_and_filters(self, store, library):
        for i in range(5):
            await store.insert_asset(_asset(library.id, name=f"a{i}.png", folder="/sprites"))
        await store.insert_asset(_asset(library.id, name="song.mp3", file_type="audio"))

        page = await store.get_assets(library.id, page=2, page_size=2, sort_by="name", sort_order="asc")
        assert page.total == 6
        assert [a.file_name for a in page.assets] == ["a2.png", "a3.png"]

        sprites = await store.get_assets(library.id, folder_path="/sprites/")
        assert sprites.total == 5
        audio = await store.get_assets(library.id, file_type="audio")
        assert [a.file_name for a in audio.assets] == ["song.mp3"]

    @pytest.mark.asyncio
    async def test_updates(self, store, library):
        asset = await store.insert_asset(_asset(library.id))
        await store.rename_asset(asset.id, "villain.png")
        await store.update_asset_description(asset.id, "big bad")
        await store.update_ai_description(asset.id, "a villain")
        fresh = await store.get_asset(asset.id)
        assert (fresh.file_name, fresh.description, fresh.ai_description) == ("villain.png", "big bad", "a villain")

    @pytest.mark.asyncio
    async def test_update_missing(self, store):
        with pytest.raises(NotFound):
            await store.rename_asset("missing", "x.png")

    @pytest.mark.asyncio
    async def test_move_and_delete(self, store, library):
        a = await store.insert_asset(_asset(library.id))
        b = await store.insert_asset(_asset(library.id))
        assert await store.move_assets([a.id, b.id], "props/") == 2
        assert (await store.get_asset(a.id)).folder_path == "/props"
        assert await store.delete_assets([a.id, "missing"]) == 1
        with pytest.raises(NotFound):
            await store.get_asset(a.id)

    @pytest.mark.asyncio
    async def test_derived_from_cleared_on_source_delete(self, store, library):
        src = await store.insert_asset(_asset(library.id))
        child = _asset(library.id)
        child.derived_from = src.id
        child = await store.insert_asset(child)
        await store.delete_assets([src.id])
        assert (await store.get_asset(child.id)).derived_from is None


class TestTags:
    @pytest.mark.asyncio
    async def test_counts_and_category(self, store, library):
        a = await store.insert_asset(_asset(library.id))
        b = await store.insert_asset(_asset(library.id))
        hero = await store.create_tag(library.id, "hero", category="content")
        red = await store.create_tag(library.id, "red", color="#ff0000", category="color")
        await store.assign_tags(a.id, [hero.id, red.id])
        await store.assign_tags(b.id, [hero.id, hero.id])

        tags = {t.name: t for t in await store.list_tags(library.id)}
        assert tags["hero"].asset_count == 2
        assert tags["red"].asset_count == 1
        assert tags["hero"].color == "#808080"
        assert [t.name for t in await store.list_tags(library.id, category="color")] == ["red"]

    @pytest.mark.asyncio
    async def test_assign_is_idempotent(self, store, session, library):
        a = await store.insert_asset(_asset(library.id))
        tag = await store.create_tag(library.id, "hero")
        await store.assign_tags(a.id, [tag.id], confidence=0.4)
        await store.assign_tags(a.id, [tag.id], confidence=0.9)
        link = await session.scalar(select(AssetTag).where(AssetTag.asset_id == a.id))
        assert link.confidence == pytest.approx(0.4)

    @pytest.mark.asyncio
    async def test_get_or_create(self, store, library):
        first = await store.get_or_create_tag(library.id, "sword", is_ai=True, category="content")
        again = await store.get_or_create_tag(library.id, "sword")
        assert first.id == again.id
        assert again.is_ai

    @pytest.mark.asyncio
    async def test_remove_rename_delete(self, store, library):
        a = await store.insert_asset(_asset(library.id))
        tag = await store.create_tag(library.id, "hero")
        await store.assign_tags(a.id, [tag.id])
        await store.remove_tags(a.id, [tag.id])
        assert await store.get_asset_tags(a.id) == []

        await store.rename_tag(tag.id, "champion")
        assert [t.name for t in await store.list_tags(library.id)] == ["champion"]
        await store.delete_tag(tag.id)
        assert await store.list_tags(library.id) == []

    @pytest.mark.asyncio
    async def test_rename_missing(self, store):
        with pytest.raises(NotFound):
            await store.rename_tag("missing", "x")

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, store, library):
        library_id = library.id
        await store.create_tag(library_id, "hero")
        with pytest.raises(InvalidInput, match="already exists"):
            await store.create_tag(library_id, "hero")
        # session is still usable
        assert [t.name for t in await store.list_tags(library_id)] == ["hero"]

    @pytest.mark.asyncio
    async def test_rename_onto_existing_name(self, store, library):
        library_id = library.id
        await store.create_tag(library_id, "hero")
        villain = await store.create_tag(library_id, "villain")
        with pytest.raises(InvalidInput, match="already exists"):
            await store.rename_tag(villain.id, "hero")
        await store.rename_tag(villain.id, "villain")
        assert [t.name for t in await store.list_tags(library_id)] == ["hero", "villain"]

    @pytest.mark.asyncio
    async def test_assign_unknown_tag(self, store, session, library):
        a = await store.insert_asset(_asset(library.id))
        with pytest.raises(NotFound):
            await store.assign_tags(a.id, ["no-such-tag"])
        assert await session.scalar(select(func.count()).select_from(AssetTag)) == 0

    @pytest.mark.asyncio
    async def test_assign_tag_from_other_library(self, store, library, tmp_path):
        a = await store.insert_asset(_asset(library.id))
        other = await store.create_library("Other", str(tmp_path / "other"))
        foreign = await store.create_tag(other.id, "hero")
        with pytest.raises(NotFound):
            await store.assign_tags(a.id, [foreign.id])
        assert await store.get_asset_tags(a.id) == []

    @pytest.mark.asyncio
    async def test_delete_missing(self, store):
        with pytest.raises(NotFound):
            await store.delete_tag("missing")


class TestSearch:
    @pytest.mark.asyncio
    async def test_keyword_matches_name_and_descriptions(self, store, library):
        knight = await store.insert_asset(_asset(library.id, name="knight.png", description="armored hero"))
        await store.insert_asset(_asset(library.id, name="tree.png", description="forest prop"))

        by_desc = await store.search_keyword(library.id, "hero")
        assert [a.id for a in by_desc.assets] == [knight.id]
        assert by_desc.total == 1

        await store.update_ai_description(knight.id, "shiny silver helmet")
        by_ai = await store.search_keyword(library.id, "helmet")
        assert [a.id for a in by_ai.assets] == [knight.id]

    @pytest.mark.asyncio
    async def test_keyword_query_is_a_phrase(self, store, library):
        await store.insert_asset(_asset(library.id, description='say "hi" OR NOT'))
        result = await store.search_keyword(library.id, 'OR NOT')
        assert result.total == 1
        assert (await store.search_keyword(library.id, 'unbalanced "quote')).total == 0

    @pytest.mark.asyncio
    async def test_keyword_file_type_filter(self, store, library):
        await store.insert_asset(_asset(library.id, name="boom.wav", description="explosion", file_type="audio"))
        await store.insert_asset(_asset(library.id, name="boom.png", description="explosion"))
        result = await store.search_keyword(library.id, "explosion", file_type="audio")
        assert [a.file_name for a in result.assets] == ["boom.wav"]

    @pytest.mark.asyncio
    async def test_deleted_assets_leave_the_index(self, store, library):
        a = await store.insert_asset(_asset(library.id, description="ghost"))
        await store.delete_assets([a.id])
        assert (await store.search_keyword(library.id, "ghost")).total == 0

    @pytest.mark.asyncio
    async def test_keyword_with_tag_filter_is_empty(self, store, library):
        a = await store.insert_asset(_asset(library.id, description="hero"))
        tag = await store.create_tag(library.id, "t")
        await store.assign_tags(a.id, [tag.id])
        result = await store.search_keyword(library.id, "hero", tag_ids=[tag.id])
        assert result.assets == []
        assert result.total == 0

    @pytest.mark.asyncio
    async def test_search_by_tags_any_and_all(self, store, library):
        a = await store.insert_asset(_asset(library.id))
        b = await store.insert_asset(_asset(library.id))
        red = await store.create_tag(library.id, "red")
        big = await store.create_tag(library.id, "big")
        await store.assign_tags(a.id, [red.id, big.id])
        await store.assign_tags(b.id, [red.id])

        any_match = await store.search_by_tags(library.id, [red.id, big.id])
        assert {x.id for x in any_match} == {a.id, b.id}
        all_match = await store.search_by_tags(library.id, [red.id, big.id], match_all=True)
        assert [x.id for x in all_match] == [a.id]


class TestEmbeddings:
    @pytest.mark.asyncio
    async def test_resave_replaces(self, store, session, library):
        a = await store.insert_asset(_asset(library.id))
        await store.save_embedding(a.id, "m1", f32_vec_to_bytes([1.0, 0.0]))
        await store.save_embedding(a.id, "m1", f32_vec_to_bytes([0.0, 1.0]))
        await store.save_embedding(a.id, "m2", f32_vec_to_bytes([5.0]))

        rows = await store.get_all_embeddings(library.id, "m1")
        assert rows == [(a.id, f32_vec_to_bytes([0.0, 1.0]))]
        assert await session.scalar(select(func.count()).select_from(Embedding)) == 2

    @pytest.mark.asyncio
    async def test_asset_delete_removes_embeddings(self, store, library):
        a = await store.insert_asset(_asset(library.id))
        await store.save_embedding(a.id, "m1", f32_vec_to_bytes([1.0]))
        await store.delete_assets([a.id])
        assert await store.get_all_embeddings(library.id, "m1") == []

    @pytest.mark.asyncio
    async def test_missing_asset(self, store, session):
        with pytest.raises(NotFound):
            await store.save_embedding("missing", "m1", f32_vec_to_bytes([1.0]))
        assert await session.scalar(select(func.count()).select_from(Embedding)) == 0


class TestAiConfig:
    @pytest.mark.asyncio
    async def test_single_active(self, store):
        assert await store.get_active_ai_config() is None
        await store.save_ai_config(AiConfig(provider_name="a", api_endpoint="http://a", model_id="m1"))
        second = await store.save_ai_config(AiConfig(provider_name="b", api_endpoint="http://b", model_id="m2"))
        active = await store.get_active_ai_config()
        assert active.id == second.id

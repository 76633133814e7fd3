from alembic import op
import sqlalchemy as sa

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

FTS_STATEMENTS = (
    """CREATE VIRTUAL TABLE IF NOT EXISTS assets_fts USING fts5(
        file_name, description, ai_description,
        content='assets', content_rowid='rowid'
    )""",
    """CREATE TRIGGER IF NOT EXISTS assets_fts_ai AFTER INSERT ON assets BEGIN
        INSERT INTO assets_fts(rowid, file_name, description, ai_description)
        VALUES (new.rowid, new.file_name, new.description, new.ai_description);
    END""",
    """CREATE TRIGGER IF NOT EXISTS assets_fts_ad AFTER DELETE ON assets BEGIN
        INSERT INTO assets_fts(assets_fts, rowid, file_name, description, ai_description)
        VALUES ('delete', old.rowid, old.file_name, old.description, old.ai_description);
    END""",
    """CREATE TRIGGER IF NOT EXISTS assets_fts_au AFTER UPDATE ON assets BEGIN
        INSERT INTO assets_fts(assets_fts, rowid, file_name, description, ai_description)
        VALUES ('delete', old.rowid, old.file_name, old.description, old.ai_description);
        INSERT INTO assets_fts(rowid, file_name, description, ai_description)
        VALUES (new.rowid, new.file_name, new.description, new.ai_description);
    END""",
)

def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now())

def upgrade():
    op.create_table(
        "libraries",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("root_path", sa.String(length=1024), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_table(
        "assets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("library_id", sa.String(length=36), sa.ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("file_name", sa.String(length=512), nullable=False),
        sa.Column("original_name", sa.String(length=512), nullable=False),
        sa.Column("relative_path", sa.String(length=1024), nullable=False),
        sa.Column("file_type", sa.String(length=16), nullable=False),
        sa.Column("mime_type", sa.String(length=128), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("file_hash", sa.String(length=64), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("duration_ms", sa.BigInteger(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("ai_description", sa.Text(), nullable=False),
        sa.Column("thumbnail_path", sa.String(length=1024), nullable=True),
        sa.Column("folder_path", sa.String(length=1024), nullable=False),
        sa.Column("derived_from", sa.String(length=36), sa.ForeignKey("assets.id", ondelete="SET NULL"), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("imported_at"),
        sa.UniqueConstraint("library_id", "relative_path", name="uq_assets_library_relative_path"),
    )
    op.create_index("ix_assets_library_id", "assets", ["library_id"])
    op.create_index("ix_assets_file_hash", "assets", ["file_hash"])
    op.create_index("ix_assets_folder_path", "assets", ["folder_path"])

    op.create_table(
        "tags",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("library_id", sa.String(length=36), sa.ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("color", sa.String(length=16), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("is_ai", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("library_id", "name", name="uq_tags_library_name"),
    )
    op.create_index("ix_tags_library_id", "tags", ["library_id"])

    op.create_table(
        "asset_tags",
        sa.Column("asset_id", sa.String(length=36), sa.ForeignKey("assets.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("tag_id", sa.String(length=36), sa.ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("confidence", sa.Float(), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_asset_tags_tag_id", "asset_tags", ["tag_id"])

    op.create_table(
        "embeddings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("asset_id", sa.String(length=36), sa.ForeignKey("assets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("model", sa.String(length=255), nullable=False),
        sa.Column("vector", sa.LargeBinary(), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("asset_id", "model", name="uq_embeddings_asset_model"),
    )
    op.create_index("ix_embeddings_asset_id", "embeddings", ["asset_id"])

    op.create_table(
        "ai_config",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("provider_name", sa.String(length=128), nullable=False),
        sa.Column("api_endpoint", sa.String(length=1024), nullable=False),
        sa.Column("api_key", sa.String(length=1024), nullable=False),
        sa.Column("model_id", sa.String(length=255), nullable=False),
        sa.Column("embedding_model", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
    )

    if op.get_bind().dialect.name == "sqlite":
        for stmt in FTS_STATEMENTS:
            op.execute(stmt)

def downgrade():
    if op.get_bind().dialect.name == "sqlite":
        for trigger in ("assets_fts_au", "assets_fts_ad", "assets_fts_ai"):
            op.execute(f"DROP TRIGGER IF EXISTS {trigger}")
        op.execute("DROP TABLE IF EXISTS assets_fts")
    op.drop_table("ai_config")
    op.drop_index("ix_embeddings_asset_id", table_name="embeddings")
    op.drop_table("embeddings")
    op.drop_index("ix_asset_tags_tag_id", table_name="asset_tags")
    op.drop_table("asset_tags")
    op.drop_index("ix_tags_library_id", table_name="tags")
    op.drop_table("tags")
    op.drop_index("ix_assets_folder_path", table_name="assets")
    op.drop_index("ix_assets_file_hash", table_name="assets")
    op.drop_index("ix_assets_library_id", table_name="assets")
    op.drop_table("assets")
    op.drop_table("libraries")

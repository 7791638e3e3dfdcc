"""
Initial StreamVault schema.

- tenants: isolation boundary (+ stored quotas)
- principals: tenant-scoped accounts with a single role
- media_artifacts: stored video + pipeline status + extractor metadata
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers, used by Alembic.
revision = "20261017_01_tenants_principals_media"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    principal_role = sa.Enum("ADMIN", "EDITOR", "VIEWER", name="principal_role")
    artifact_status = sa.Enum("PENDING", "PROCESSING", "COMPLETED", "FLAGGED", name="artifact_status")

    # --- tenants ---
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("domain", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("max_storage_gb", sa.Integer(), server_default=sa.text("100"), nullable=False),
        sa.Column("max_video_size_mb", sa.Integer(), server_default=sa.text("500"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("max_storage_gb > 0", name="ck_tenants_max_storage_positive"),
        sa.CheckConstraint("max_video_size_mb > 0", name="ck_tenants_max_video_size_positive"),
        sa.PrimaryKeyConstraint("id", name="pk_tenants"),
        sa.UniqueConstraint("domain", name="uq_tenants_domain"),
    )
    op.create_index("ix_tenants_is_active", "tenants", ["is_active"], unique=False)

    # --- principals ---
    op.create_table(
        "principals",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("role", principal_role, nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["tenant_id"], ["tenants.id"], name="fk_principals_tenant_id_tenants", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_principals"),
        sa.UniqueConstraint("email", name="uq_principals_email"),
    )
    op.create_index("ix_principals_tenant_id", "principals", ["tenant_id"], unique=False)
    op.create_index("ix_principals_tenant_role", "principals", ["tenant_id", "role"], unique=False)

    # --- media_artifacts ---
    op.create_table(
        "media_artifacts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("original_filename", sa.String(length=512), nullable=False),
        sa.Column("storage_key", sa.String(length=1024), nullable=False),
        sa.Column("bytes_size", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(length=127), nullable=False),
        sa.Column("status", artifact_status, nullable=False),
        sa.Column("status_detail", sa.Text(), nullable=True),
        sa.Column("processing_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("bitrate", sa.BigInteger(), nullable=True),
        sa.Column("codec", sa.String(length=64), nullable=True),
        sa.Column("frame_rate", sa.Float(), nullable=True),
        sa.Column("audio_codec", sa.String(length=64), nullable=True),
        sa.Column("is_public", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("views", sa.Integer(), server_default=sa.text("0"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("bytes_size >= 0", name="ck_media_artifacts_size_nonneg"),
        sa.CheckConstraint("views >= 0", name="ck_media_artifacts_views_nonneg"),
        sa.CheckConstraint(
            "(width IS NULL OR width > 0) AND (height IS NULL OR height > 0)",
            name="ck_media_artifacts_dims_positive",
        ),
        sa.CheckConstraint(
            "(duration_seconds IS NULL) OR (duration_seconds >= 0)", name="ck_media_artifacts_duration_nonneg"
        ),
        sa.CheckConstraint("length(storage_key) > 0", name="ck_media_artifacts_storage_key_not_blank"),
        sa.ForeignKeyConstraint(
            ["tenant_id"], ["tenants.id"], name="fk_media_artifacts_tenant_id_tenants", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["owner_id"], ["principals.id"], name="fk_media_artifacts_owner_id_principals", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_media_artifacts"),
        sa.UniqueConstraint("storage_key", name="uq_media_artifacts_storage_key"),
    )
    op.create_index("ix_media_artifacts_tenant_id", "media_artifacts", ["tenant_id"], unique=False)
    op.create_index("ix_media_artifacts_owner_id", "media_artifacts", ["owner_id"], unique=False)
    op.create_index("ix_media_artifacts_status", "media_artifacts", ["status"], unique=False)
    op.create_index("ix_media_artifacts_is_public", "media_artifacts", ["is_public"], unique=False)
    op.create_index("ix_media_artifacts_tenant_created", "media_artifacts", ["tenant_id", "created_at"], unique=False)
    op.create_index("ix_media_artifacts_tenant_status", "media_artifacts", ["tenant_id", "status"], unique=False)
    op.create_index("ix_media_artifacts_tenant_owner", "media_artifacts", ["tenant_id", "owner_id"], unique=False)
    op.create_index("ix_media_artifacts_tenant_public", "media_artifacts", ["tenant_id", "is_public"], unique=False)


def downgrade() -> None:
    op.drop_table("media_artifacts")
    op.drop_table("principals")
    op.drop_table("tenants")
    sa.Enum(name="artifact_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="principal_role").drop(op.get_bind(), checkfirst=True)

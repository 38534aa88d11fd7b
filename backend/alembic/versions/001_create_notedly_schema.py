"""Create users, boards, permissions and notes

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  The normalized schema: one grant row per (board, user), notes bound
       to boards, 64-character content-derived board and note identifiers.
How:   Foreign keys without ON DELETE CASCADE; BoardService deletes a
       board's notes and grants explicitly.

Rollback: downgrade() drops all four tables (destructive).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("provider_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column(
            "token_hash",
            sa.String(64),
            nullable=False,
            server_default=sa.text("''"),
            comment="SHA3-256 hex digest of the current provider access token",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("provider", "provider_id", name="uq_users_provider_identity"),
    )
    op.create_index("idx_users_token_hash", "users", ["token_hash"])

    op.create_table(
        "boards",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column(
            "visibility",
            sa.String(16),
            nullable=False,
            server_default=sa.text("'private'"),
        ),
        sa.Column(
            "acl_version",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
            comment="Incremented on grant, revoke and visibility change",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], name="fk_boards_owner_id_users"),
        sa.CheckConstraint(
            "visibility IN ('private', 'unlisted', 'permissive')",
            name="board_visibility",
        ),
    )
    op.create_index("ix_boards_owner_id", "boards", ["owner_id"])

    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("board_id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("write", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["board_id"], ["boards.id"], name="fk_permissions_board_id_boards"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_permissions_user_id_users"),
        sa.UniqueConstraint("board_id", "user_id", name="uq_permissions_board_user"),
    )
    op.create_index("ix_permissions_board_id", "permissions", ["board_id"])
    op.create_index("ix_permissions_user_id", "permissions", ["user_id"])

    op.create_table(
        "notes",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("board_id", sa.String(64), nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["board_id"], ["boards.id"], name="fk_notes_board_id_boards"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], name="fk_notes_author_id_users"),
    )
    op.create_index("idx_notes_board_created_at", "notes", ["board_id", "created_at"])
    op.create_index("ix_notes_author_id", "notes", ["author_id"])


def downgrade() -> None:
    op.drop_index("ix_notes_author_id", table_name="notes")
    op.drop_index("idx_notes_board_created_at", table_name="notes")
    op.drop_table("notes")
    op.drop_index("ix_permissions_user_id", table_name="permissions")
    op.drop_index("ix_permissions_board_id", table_name="permissions")
    op.drop_table("permissions")
    op.drop_index("ix_boards_owner_id", table_name="boards")
    op.drop_table("boards")
    op.drop_index("idx_users_token_hash", table_name="users")
    op.drop_table("users")

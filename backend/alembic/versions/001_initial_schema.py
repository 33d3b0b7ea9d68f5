"""Initial schema: catalog lookups, reservations and participations.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("external_id", sa.String(128), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("token_notification", sa.String(512), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_external_id", "users", ["external_id"], unique=True)

    # Shops and their tables
    op.create_table(
        "shops",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("logo", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_shops_id", "shops", ["id"])

    op.create_table(
        "tables",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("shop_id", sa.Integer(), sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_tables_id", "tables", ["id"])
    op.create_index("ix_tables_shop_id", "tables", ["shop_id"])

    # Catalog lookups
    op.create_table(
        "difficulties",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("difficulty_rate", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_difficulties_id", "difficulties", ["id"])

    op.create_table(
        "game_categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("description", sa.String(255), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("description"),
    )
    op.create_index("ix_game_categories_id", "game_categories", ["id"])

    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("bgg_id", sa.Integer(), nullable=True),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("game_categories.id"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("bgg_id"),
    )
    op.create_index("ix_games_id", "games", ["id"])
    # Reservations may name a game by a fragment of its name
    op.create_index("ix_games_name", "games", ["name"])

    # Reservations table
    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("total_places", sa.Integer(), nullable=False),
        sa.Column("hour_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("hour_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("required_material", sa.String(500), nullable=False),
        sa.Column("shop_event", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("event_id", sa.String(64), nullable=True),
        sa.Column("confirmation_notification", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "difficulty_id", sa.Integer(), sa.ForeignKey("difficulties.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="SET NULL"), nullable=True),
        sa.Column("table_id", sa.Integer(), sa.ForeignKey("tables.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("total_places > 0", name="check_reservation_places_positive"),
        sa.CheckConstraint("hour_end > hour_start", name="check_reservation_time_range"),
    )
    op.create_index("ix_reservations_id", "reservations", ["id"])
    # The notifier scans a start-time window every run; day listings are ranges too
    op.create_index("ix_reservations_hour_start", "reservations", ["hour_start"])
    op.create_index("ix_reservations_table_id", "reservations", ["table_id"])
    op.create_index("ix_reservations_event_id", "reservations", ["event_id"])

    # Participations
    op.create_table(
        "user_reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "reservation_id", sa.Integer(), sa.ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("confirmed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "reservation_id", name="uq_user_reservation"),
    )
    op.create_index("ix_user_reservations_id", "user_reservations", ["id"])
    op.create_index("ix_user_reservations_user_id", "user_reservations", ["user_id"])
    op.create_index("ix_user_reservations_reservation_id", "user_reservations", ["reservation_id"])


def downgrade() -> None:
    op.drop_table("user_reservations")
    op.drop_table("reservations")
    op.drop_table("games")
    op.drop_table("game_categories")
    op.drop_table("difficulties")
    op.drop_table("tables")
    op.drop_table("shops")
    op.drop_table("users")

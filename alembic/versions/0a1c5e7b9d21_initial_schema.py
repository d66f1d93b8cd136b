"""Initial lobbywatch schema

Lobby store tables (regions, map documents, profiles, lobbies, slots,
join history, stats), subscription rules and the posted-message ledger.

Revision ID: 0a1c5e7b9d21
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "0a1c5e7b9d21"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- Reference data ---
    op.create_table(
        "regions",
        sa.Column("id", sa.SmallInteger(), autoincrement=False, nullable=False),
        sa.Column("code", sa.String(4), nullable=False),
        sa.Column("name", sa.String(32), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_table(
        "map_documents",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("region_id", sa.SmallInteger(), sa.ForeignKey("regions.id"), nullable=False),
        sa.Column("bnet_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_extension_mod", sa.Boolean(), server_default=sa.false()),
        sa.Column("icon_hash", sa.String(64), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("region_id", "bnet_id", name="uq_map_documents_region_bnet"),
    )
    op.create_index("ix_map_documents_name", "map_documents", ["name"])
    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("region_id", sa.SmallInteger(), sa.ForeignKey("regions.id"), nullable=False),
        sa.Column("realm_id", sa.SmallInteger(), nullable=False),
        sa.Column("profile_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("discriminator", sa.Integer(), server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("region_id", "realm_id", "profile_id", name="uq_profiles_handle"),
    )
    op.create_index("ix_profiles_name", "profiles", ["name", "discriminator"])

    # --- Lobbies ---
    op.create_table(
        "game_lobbies",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("region_id", sa.SmallInteger(), sa.ForeignKey("regions.id"), nullable=False),
        sa.Column("bnet_bucket_id", sa.Integer(), nullable=False),
        sa.Column("bnet_record_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="open"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("snapshot_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("slots_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "map_document_id", sa.Integer(), sa.ForeignKey("map_documents.id"), nullable=False
        ),
        sa.Column(
            "ext_mod_document_id", sa.Integer(), sa.ForeignKey("map_documents.id"), nullable=True
        ),
        sa.Column("map_variant_index", sa.SmallInteger(), server_default="0"),
        sa.Column("map_variant_mode", sa.String(64), server_default=""),
        sa.Column("lobby_title", sa.String(128), nullable=True),
        sa.Column("host_name", sa.String(64), nullable=True),
        sa.Column("slots_humans_taken", sa.SmallInteger(), server_default="0"),
        sa.Column("slots_humans_total", sa.SmallInteger(), server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "region_id", "bnet_bucket_id", "bnet_record_id", name="uq_game_lobbies_handle"
        ),
    )
    op.create_index("ix_game_lobbies_status", "game_lobbies", ["status"])
    op.create_table(
        "lobby_player_joins",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "lobby_id", sa.Integer(),
            sa.ForeignKey("game_lobbies.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("profile_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lobby_player_joins_lobby", "lobby_player_joins", ["lobby_id"])
    op.create_table(
        "game_lobby_slots",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "lobby_id", sa.Integer(),
            sa.ForeignKey("game_lobbies.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("slot_number", sa.SmallInteger(), nullable=False),
        sa.Column("team", sa.SmallInteger(), nullable=False),
        sa.Column("kind", sa.String(8), nullable=False, server_default="open"),
        sa.Column("name", sa.String(64), nullable=True),
        sa.Column("profile_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=True),
        sa.Column(
            "join_info_id", sa.Integer(),
            sa.ForeignKey("lobby_player_joins.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lobby_id", "slot_number", name="uq_game_lobby_slots_number"),
    )

    # --- Discord side ---
    op.create_table(
        "lobby_subscriptions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("enabled", sa.Boolean(), server_default=sa.true()),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("guild_id", sa.BigInteger(), nullable=True),
        sa.Column("channel_id", sa.BigInteger(), nullable=True),
        sa.Column("map_name", sa.String(255), nullable=False),
        sa.Column("is_map_name_partial", sa.Boolean(), server_default=sa.false()),
        sa.Column("is_map_name_regex", sa.Boolean(), server_default=sa.false()),
        sa.Column("variant", sa.String(64), nullable=True),
        sa.Column("region_id", sa.SmallInteger(), sa.ForeignKey("regions.id"), nullable=True),
        sa.Column("time_delay", sa.Integer(), nullable=True),
        sa.Column("human_slots_min", sa.SmallInteger(), nullable=True),
        sa.Column("delete_message_started", sa.Boolean(), server_default=sa.false()),
        sa.Column("delete_message_abandoned", sa.Boolean(), server_default=sa.false()),
        sa.Column("show_leavers", sa.Boolean(), server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(user_id IS NOT NULL AND guild_id IS NULL AND channel_id IS NULL) OR "
            "(user_id IS NULL AND guild_id IS NOT NULL AND channel_id IS NOT NULL)",
            name="ck_lobby_subscriptions_destination",
        ),
    )
    op.create_index("ix_lobby_subscriptions_enabled", "lobby_subscriptions", ["enabled"])
    op.create_table(
        "lobby_messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "lobby_id", sa.Integer(),
            sa.ForeignKey("game_lobbies.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "rule_id", sa.Integer(),
            sa.ForeignKey("lobby_subscriptions.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("guild_id", sa.BigInteger(), nullable=True),
        sa.Column("channel_id", sa.BigInteger(), nullable=False),
        sa.Column("message_id", sa.BigInteger(), nullable=False),
        sa.Column("completed", sa.Boolean(), server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lobby_messages_completed", "lobby_messages", ["completed", "updated_at"])
    op.create_index("ix_lobby_messages_lobby", "lobby_messages", ["lobby_id"])

    # --- Map statistics ---
    op.create_table(
        "stats_periods",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("date_from", sa.Date(), nullable=False),
        sa.Column("length", sa.SmallInteger(), nullable=False),
        sa.Column("completed", sa.Boolean(), server_default=sa.false()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("date_from", "length", name="uq_stats_periods_window"),
    )
    op.create_table(
        "stats_period_maps",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "period_id", sa.Integer(),
            sa.ForeignKey("stats_periods.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "document_id", sa.Integer(),
            sa.ForeignKey("map_documents.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("lobbies_hosted", sa.Integer(), server_default="0"),
        sa.Column("lobbies_started", sa.Integer(), server_default="0"),
        sa.Column("participants_total", sa.Integer(), server_default="0"),
        sa.Column("participants_unique_total", sa.Integer(), server_default="0"),
        sa.Column("pending_time_average", sa.Float(), server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("period_id", "document_id", name="uq_stats_period_maps"),
    )


def downgrade() -> None:
    op.drop_table("stats_period_maps")
    op.drop_table("stats_periods")
    op.drop_index("ix_lobby_messages_lobby", table_name="lobby_messages")
    op.drop_index("ix_lobby_messages_completed", table_name="lobby_messages")
    op.drop_table("lobby_messages")
    op.drop_index("ix_lobby_subscriptions_enabled", table_name="lobby_subscriptions")
    op.drop_table("lobby_subscriptions")
    op.drop_table("game_lobby_slots")
    op.drop_index("ix_lobby_player_joins_lobby", table_name="lobby_player_joins")
    op.drop_table("lobby_player_joins")
    op.drop_index("ix_game_lobbies_status", table_name="game_lobbies")
    op.drop_table("game_lobbies")
    op.drop_index("ix_profiles_name", table_name="profiles")
    op.drop_table("profiles")
    op.drop_index("ix_map_documents_name", table_name="map_documents")
    op.drop_table("map_documents")
    op.drop_table("regions")

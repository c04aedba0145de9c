"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def _id_index(table: str) -> None:
    op.create_index(op.f(f"ix_{table}_id"), table, ["id"], unique=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    _id_index("users")
    op.create_index(op.f("ix_users_username"), "users", ["username"], unique=True)

    op.create_table(
        "campaigns",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("campaigns")
    op.create_index(op.f("ix_campaigns_owner_id"), "campaigns", ["owner_id"], unique=False)

    op.create_table(
        "campaign_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("is_dm", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("campaign_id", "user_id", name="uq_campaign_member"),
    )
    _id_index("campaign_members")
    op.create_index(op.f("ix_campaign_members_campaign_id"), "campaign_members", ["campaign_id"], unique=False)
    op.create_index(op.f("ix_campaign_members_user_id"), "campaign_members", ["user_id"], unique=False)

    op.create_table(
        "characters",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("xp", sa.Integer(), nullable=False),
        sa.Column("offense", sa.Integer(), nullable=False),
        sa.Column("defense", sa.Integer(), nullable=False),
        sa.Column("control", sa.Integer(), nullable=False),
        sa.Column("support", sa.Integer(), nullable=False),
        sa.Column("mobility", sa.Integer(), nullable=False),
        sa.Column("utility", sa.Integer(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.ForeignKeyConstraint(["player_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("characters")
    op.create_index(op.f("ix_characters_campaign_id"), "characters", ["campaign_id"], unique=False)
    op.create_index(op.f("ix_characters_player_id"), "characters", ["player_id"], unique=False)

    op.create_table(
        "skills",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("character_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("kind", sa.Enum("passive", "active", "ultimate", name="skillkind"), nullable=False),
        sa.Column(
            "targeting",
            sa.Enum("self", "single", "tile", "area", "line", "cone", name="targetingkind"),
            nullable=False,
        ),
        sa.Column("targeting_json", sa.JSON(), nullable=False),
        sa.Column("range_tiles", sa.Integer(), nullable=False),
        sa.Column("cooldown_turns", sa.Integer(), nullable=False),
        sa.Column("cost_json", sa.JSON(), nullable=False),
        sa.Column("effects_json", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["character_id"], ["characters.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("skills")
    op.create_index(op.f("ix_skills_character_id"), "skills", ["character_id"], unique=False)

    op.create_table(
        "combat_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("seed", sa.Integer(), nullable=False),
        sa.Column("status", sa.Enum("active", "ended", name="combatstatus"), nullable=False),
        sa.Column("current_turn_index", sa.Integer(), nullable=False),
        sa.Column("turn_number", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.Column("outcome", sa.JSON(), nullable=True),
        _created_at(),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("combat_sessions")
    op.create_index(op.f("ix_combat_sessions_campaign_id"), "combat_sessions", ["campaign_id"], unique=False)

    op.create_table(
        "combatants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("combat_session_id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.Enum("player", "npc", "summon", name="entitytype"), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=True),
        sa.Column("character_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("offense", sa.Integer(), nullable=False),
        sa.Column("defense", sa.Integer(), nullable=False),
        sa.Column("control", sa.Integer(), nullable=False),
        sa.Column("support", sa.Integer(), nullable=False),
        sa.Column("mobility", sa.Integer(), nullable=False),
        sa.Column("utility", sa.Integer(), nullable=False),
        sa.Column("weapon_power", sa.Integer(), nullable=False),
        sa.Column("armor", sa.Integer(), nullable=False),
        sa.Column("resist", sa.Integer(), nullable=False),
        sa.Column("hp", sa.Integer(), nullable=False),
        sa.Column("hp_max", sa.Integer(), nullable=False),
        sa.Column("power", sa.Integer(), nullable=False),
        sa.Column("power_max", sa.Integer(), nullable=False),
        sa.Column("x", sa.Integer(), nullable=False),
        sa.Column("y", sa.Integer(), nullable=False),
        sa.Column("initiative", sa.Integer(), nullable=False),
        sa.Column("is_alive", sa.Boolean(), nullable=False),
        sa.Column("statuses", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.ForeignKeyConstraint(["player_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["character_id"], ["characters.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("combatants")
    op.create_index(
        op.f("ix_combatants_combat_session_id"), "combatants", ["combat_session_id"], unique=False
    )

    op.create_table(
        "turn_order",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("combat_session_id", sa.Integer(), nullable=False),
        sa.Column("turn_index", sa.Integer(), nullable=False),
        sa.Column("combatant_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.ForeignKeyConstraint(["combatant_id"], ["combatants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("combat_session_id", "turn_index", name="uq_turn_order_slot"),
    )
    _id_index("turn_order")
    op.create_index(
        op.f("ix_turn_order_combat_session_id"), "turn_order", ["combat_session_id"], unique=False
    )

    op.create_table(
        "boss_templates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("phases_json", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("boss_templates")

    op.create_table(
        "boss_instances",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("combat_session_id", sa.Integer(), nullable=False),
        sa.Column("combatant_id", sa.Integer(), nullable=False),
        sa.Column("boss_template_id", sa.Integer(), nullable=False),
        sa.Column("current_phase", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.ForeignKeyConstraint(["combatant_id"], ["combatants.id"]),
        sa.ForeignKeyConstraint(["boss_template_id"], ["boss_templates.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("boss_instances")
    op.create_index(
        op.f("ix_boss_instances_combat_session_id"), "boss_instances", ["combat_session_id"], unique=False
    )
    op.create_index(op.f("ix_boss_instances_combatant_id"), "boss_instances", ["combatant_id"], unique=False)

    op.create_table(
        "action_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("combat_session_id", sa.Integer(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("turn_index", sa.Integer(), nullable=False),
        sa.Column("turn_number", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("actor_combatant_id", sa.Integer(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.ForeignKeyConstraint(["actor_combatant_id"], ["combatants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("combat_session_id", "sequence", name="uq_action_event_sequence"),
    )
    _id_index("action_events")
    op.create_index(
        op.f("ix_action_events_combat_session_id"), "action_events", ["combat_session_id"], unique=False
    )

    board_type = sa.Enum("town", "dungeon", "travel", "combat", name="boardtype")
    op.create_table(
        "boards",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("board_type", board_type, nullable=False),
        sa.Column("status", sa.Enum("active", "archived", name="boardstatus"), nullable=False),
        sa.Column("combat_session_id", sa.Integer(), nullable=True),
        sa.Column("state_json", sa.JSON(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("boards")
    op.create_index(op.f("ix_boards_campaign_id"), "boards", ["campaign_id"], unique=False)

    op.create_table(
        "board_transitions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("from_board_type", board_type, nullable=True),
        sa.Column("to_board_type", board_type, nullable=False),
        sa.Column("reason", sa.String(length=100), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("board_transitions")
    op.create_index(op.f("ix_board_transitions_campaign_id"), "board_transitions", ["campaign_id"], unique=False)

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("owner_character_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("rarity", sa.String(length=30), nullable=False),
        sa.Column("slot", sa.String(length=30), nullable=False),
        sa.Column("stat_mods", sa.JSON(), nullable=False),
        sa.Column("item_power", sa.Integer(), nullable=False),
        sa.Column("required_level", sa.Integer(), nullable=False),
        sa.Column("drop_tier", sa.String(length=30), nullable=False),
        sa.Column("bind_policy", sa.String(length=30), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.ForeignKeyConstraint(["owner_character_id"], ["characters.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("items")
    op.create_index(op.f("ix_items_campaign_id"), "items", ["campaign_id"], unique=False)

    op.create_table(
        "inventory",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("character_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("container", sa.Enum("backpack", "equipment", name="itemcontainer"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["character_id"], ["characters.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("inventory")
    op.create_index(op.f("ix_inventory_character_id"), "inventory", ["character_id"], unique=False)

    op.create_table(
        "loot_drops",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("combat_session_id", sa.Integer(), nullable=False),
        sa.Column("character_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(length=50), nullable=False),
        sa.Column("rarity", sa.String(length=30), nullable=False),
        sa.Column("budget_points", sa.Integer(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.ForeignKeyConstraint(["character_id"], ["characters.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("combat_session_id", "character_id", name="uq_loot_drop_once"),
    )
    _id_index("loot_drops")
    op.create_index(op.f("ix_loot_drops_campaign_id"), "loot_drops", ["campaign_id"], unique=False)

    op.create_table(
        "progression_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("character_id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("combat_session_id", sa.Integer(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["character_id"], ["characters.id"]),
        sa.ForeignKeyConstraint(["combat_session_id"], ["combat_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("progression_events")
    op.create_index(
        op.f("ix_progression_events_character_id"), "progression_events", ["character_id"], unique=False
    )
    op.create_index(
        op.f("ix_progression_events_combat_session_id"),
        "progression_events",
        ["combat_session_id"],
        unique=False,
    )

    op.create_table(
        "factions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("factions")
    op.create_index(op.f("ix_factions_campaign_id"), "factions", ["campaign_id"], unique=False)

    op.create_table(
        "faction_reputation",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("faction_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("rep", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.ForeignKeyConstraint(["faction_id"], ["factions.id"]),
        sa.ForeignKeyConstraint(["player_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("faction_id", "player_id", name="uq_faction_reputation"),
    )
    _id_index("faction_reputation")
    op.create_index(
        op.f("ix_faction_reputation_campaign_id"), "faction_reputation", ["campaign_id"], unique=False
    )

    op.create_table(
        "reputation_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("faction_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("severity", sa.Integer(), nullable=False),
        sa.Column("evidence", sa.JSON(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.ForeignKeyConstraint(["faction_id"], ["factions.id"]),
        sa.ForeignKeyConstraint(["player_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("reputation_events")
    op.create_index(
        op.f("ix_reputation_events_campaign_id"), "reputation_events", ["campaign_id"], unique=False
    )

    op.create_table(
        "memory_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("severity", sa.Integer(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.ForeignKeyConstraint(["player_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("memory_events")
    op.create_index(op.f("ix_memory_events_campaign_id"), "memory_events", ["campaign_id"], unique=False)

    op.create_table(
        "rate_limit_buckets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bucket_key", sa.String(length=255), nullable=False),
        sa.Column("window_start", sa.Float(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("rate_limit_buckets")
    op.create_index(
        op.f("ix_rate_limit_buckets_bucket_key"), "rate_limit_buckets", ["bucket_key"], unique=True
    )
    op.create_index(
        op.f("ix_rate_limit_buckets_expires_at"), "rate_limit_buckets", ["expires_at"], unique=False
    )

    op.create_table(
        "idempotency_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("response_body", sa.Text(), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _id_index("idempotency_records")
    op.create_index(op.f("ix_idempotency_records_key"), "idempotency_records", ["key"], unique=True)
    op.create_index(
        op.f("ix_idempotency_records_expires_at"), "idempotency_records", ["expires_at"], unique=False
    )


def downgrade() -> None:
    for table in (
        "idempotency_records",
        "rate_limit_buckets",
        "memory_events",
        "reputation_events",
        "faction_reputation",
        "factions",
        "progression_events",
        "loot_drops",
        "inventory",
        "items",
        "board_transitions",
        "boards",
        "action_events",
        "boss_instances",
        "boss_templates",
        "turn_order",
        "combatants",
        "combat_sessions",
        "skills",
        "characters",
        "campaign_members",
        "campaigns",
        "users",
    ):
        op.drop_table(table)

    for enum_name in (
        "itemcontainer",
        "boardstatus",
        "boardtype",
        "entitytype",
        "combatstatus",
        "targetingkind",
        "skillkind",
    ):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")

"""001 – Initial schema: portal sessions and audit trail.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000+05:30
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. portal_sessions ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE portal_sessions (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id        VARCHAR(64) NOT NULL,
            role           VARCHAR(20) NOT NULL,
            token_hash     VARCHAR(512) NOT NULL,
            upstream_token TEXT NOT NULL,
            profile        JSONB,
            ip_address     INET,
            user_agent     TEXT,
            expires_at     TIMESTAMPTZ NOT NULL,
            is_revoked     BOOLEAN DEFAULT FALSE,
            created_at     TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_portal_sessions_token_hash ON portal_sessions(token_hash)")
    op.execute("CREATE INDEX ix_portal_sessions_user       ON portal_sessions(user_id, role)")

    # ── 2. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    VARCHAR(64),
            actor_role  VARCHAR(20),
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   VARCHAR(64) NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            ip_address  INET,
            user_agent  TEXT,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id   ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity     ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")
    op.execute("CREATE INDEX ix_audit_trail_action     ON audit_trail(action)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for t in ("audit_trail", "portal_sessions"):
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")
    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')

"""
Enforce at most one pending meeting per pair of users

Migration to:
- backfill meetings.pair_low / meetings.pair_high (canonical unordered pair)
- add meetings.proposed_at (pending expiry clock), backfilled from created_at
- cancel all but the newest pending meeting of each pair
- create the partial unique index uq_meetings_pending_pair

Run with: python migrations/add_pending_pair_unique_index.py
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import inspect, text

from icebreaker.database import engine


def upgrade():
    """Add pair and proposed_at columns and the partial unique index"""
    with engine.begin() as conn:
        existing_columns = {col["name"] for col in inspect(conn).get_columns("meetings")}

        for column in ("pair_low", "pair_high"):
            if column not in existing_columns:
                conn.execute(text(f"ALTER TABLE meetings ADD COLUMN {column} VARCHAR(36)"))
                print(f"✅ Added {column} column")
            else:
                print(f"ℹ️  {column} column already exists")

        conn.execute(text("""
            UPDATE meetings
            SET pair_low = CASE WHEN requester_id < recipient_id THEN requester_id ELSE recipient_id END,
                pair_high = CASE WHEN requester_id < recipient_id THEN recipient_id ELSE requester_id END
            WHERE pair_low IS NULL OR pair_high IS NULL
        """))
        print("✅ Backfilled meeting pairs")

        if "proposed_at" not in existing_columns:
            conn.execute(text("ALTER TABLE meetings ADD COLUMN proposed_at TIMESTAMP"))
            print("✅ Added proposed_at column")
        else:
            print("ℹ️  proposed_at column already exists")

        result = conn.execute(text("""
            UPDATE meetings SET proposed_at = created_at WHERE proposed_at IS NULL
        """))
        print(f"✅ Backfilled proposed_at for {result.rowcount} meetings")

        # Legacy status, same meaning as pending
        result = conn.execute(text("""
            UPDATE meetings SET status = 'pending' WHERE status = 'reschedule_requested'
        """))
        print(f"✅ Normalized {result.rowcount} reschedule_requested meetings to pending")

        result = conn.execute(text("""
            UPDATE meetings SET status = 'cancelled'
            WHERE status = 'pending'
            AND EXISTS (
                SELECT 1 FROM meetings newer
                WHERE newer.status = 'pending'
                AND newer.pair_low = meetings.pair_low
                AND newer.pair_high = meetings.pair_high
                AND (newer.created_at > meetings.created_at
                     OR (newer.created_at = meetings.created_at AND newer.id > meetings.id))
            )
        """))
        print(f"✅ Cancelled {result.rowcount} duplicate pending meetings")

        conn.execute(text("""
            CREATE UNIQUE INDEX IF NOT EXISTS uq_meetings_pending_pair
            ON meetings (pair_low, pair_high)
            WHERE status = 'pending'
        """))
        print("✅ Created uq_meetings_pending_pair index")


def downgrade():
    """Drop the partial unique index (pair columns are kept)"""
    with engine.begin() as conn:
        conn.execute(text("DROP INDEX IF EXISTS uq_meetings_pending_pair"))
        print("✅ Migration rolled back successfully!")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Manage pending meeting pair index migration")
    parser.add_argument("--down", action="store_true", help="Rollback the migration")
    args = parser.parse_args()

    if args.down:
        print("Rolling back migration...")
        downgrade()
    else:
        print("Running migration...")
        upgrade()

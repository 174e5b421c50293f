"""
Add non-working day marks and booking reschedule tracking

Migration to add:
- non_working_days table (one row per date the admin closed)
- bookings.reschedule_count and bookings.rescheduled_at

Dates whose every slot is already soft-blocked as non_working_day are
backfilled into non_working_days so the slot generator leaves them alone.

Run with: python migrations/add_non_working_days_and_reschedule.py
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import text

from love4detailing.database import engine


def upgrade():
    """Create the table, add the booking columns, backfill closed dates"""
    with engine.connect() as conn:
        conn.execute(text("""
            CREATE TABLE IF NOT EXISTS non_working_days (
                day_date DATE PRIMARY KEY,
                marked_by VARCHAR(36),
                created_at TIMESTAMP NOT NULL DEFAULT NOW()
            )
        """))
        print("✅ non_working_days table ready")

        result = conn.execute(text("""
            SELECT column_name
            FROM information_schema.columns
            WHERE table_name = 'bookings'
            AND column_name IN ('reschedule_count', 'rescheduled_at')
        """))
        existing = {row[0] for row in result}

        if "reschedule_count" not in existing:
            conn.execute(text(
                "ALTER TABLE bookings ADD COLUMN reschedule_count INTEGER NOT NULL DEFAULT 0"
            ))
            print("✅ Added bookings.reschedule_count")
        else:
            print("ℹ️  bookings.reschedule_count already exists")

        if "rescheduled_at" not in existing:
            conn.execute(text("ALTER TABLE bookings ADD COLUMN rescheduled_at TIMESTAMP"))
            print("✅ Added bookings.rescheduled_at")
        else:
            print("ℹ️  bookings.rescheduled_at already exists")

        backfilled = conn.execute(text("""
            INSERT INTO non_working_days (day_date)
            SELECT slot_date
            FROM available_slots
            GROUP BY slot_date
            HAVING bool_and(block_reason = 'non_working_day')
            ON CONFLICT (day_date) DO NOTHING
        """)).rowcount
        print(f"ℹ️  Backfilled {backfilled} non-working dates")

        conn.commit()
        print("\n✅ Migration completed successfully!")


def downgrade():
    """Drop the reschedule columns and the non-working day table"""
    with engine.connect() as conn:
        conn.execute(text("ALTER TABLE bookings DROP COLUMN IF EXISTS rescheduled_at"))
        conn.execute(text("ALTER TABLE bookings DROP COLUMN IF EXISTS reschedule_count"))
        conn.execute(text("DROP TABLE IF EXISTS non_working_days"))
        print("✅ Dropped reschedule columns and non_working_days")
        conn.commit()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "downgrade":
        downgrade()
    else:
        upgrade()

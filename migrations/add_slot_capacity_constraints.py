"""
Add capacity constraints to available_slots

Migration to add:
- ck_slot_capacity_bounds (0 <= current_bookings <= max_bookings)
- ck_slot_max_bookings_positive (max_bookings >= 1)
- uq_slot_date_start (one slot per date and start time)

Rows already over capacity are clamped to max_bookings and blocked as
fully_booked before the check is added.

Run with: python migrations/add_slot_capacity_constraints.py
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import text

from love4detailing.database import engine

CONSTRAINTS = {
    "ck_slot_capacity_bounds": "CHECK (current_bookings >= 0 AND current_bookings <= max_bookings)",
    "ck_slot_max_bookings_positive": "CHECK (max_bookings >= 1)",
    "uq_slot_date_start": "UNIQUE (slot_date, start_time)",
}


def upgrade():
    """Repair out-of-range rows, then add the constraints"""
    with engine.connect() as conn:
        result = conn.execute(text("""
            SELECT conname
            FROM pg_constraint
            WHERE conrelid = 'available_slots'::regclass
        """))
        existing = {row[0] for row in result}

        repaired = conn.execute(text("""
            UPDATE available_slots
            SET current_bookings = max_bookings,
                is_blocked = TRUE,
                block_reason = 'fully_booked'
            WHERE current_bookings > max_bookings
        """)).rowcount
        negative = conn.execute(text("""
            UPDATE available_slots
            SET current_bookings = 0
            WHERE current_bookings < 0
        """)).rowcount
        print(f"ℹ️  Clamped {repaired} over-capacity and {negative} negative slot counts")

        for name, definition in CONSTRAINTS.items():
            if name in existing:
                print(f"ℹ️  {name} already exists")
                continue
            conn.execute(text(f"ALTER TABLE available_slots ADD CONSTRAINT {name} {definition}"))
            print(f"✅ Added {name}")

        conn.commit()
        print("\n✅ Migration completed successfully!")


def downgrade():
    """Remove the capacity constraints"""
    with engine.connect() as conn:
        for name in CONSTRAINTS:
            conn.execute(text(f"ALTER TABLE available_slots DROP CONSTRAINT IF EXISTS {name}"))
            print(f"✅ Dropped {name}")
        conn.commit()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "downgrade":
        downgrade()
    else:
        upgrade()

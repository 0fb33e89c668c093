#!/usr/bin/env python3
# scripts/setup_database.py
"""
Database setup script
- Verifies database connection
- Creates all tables
- Verifies the tables exist
"""
import sys

from callwave.core.config import DATABASE_URL
from callwave.db.session import engine, init_db, test_db_connection

EXPECTED_TABLES = [
    'campaigns',
    'batch_calls',
    'recipients',
    'conversations',
    'transcripts',
    'webhook_logs',
    'whatsapp_messages',
    'order_leads',
]


def setup():
    print("=" * 70)
    print("🚀 CALLWAVE DATABASE SETUP")
    print("=" * 70)

    # Step 1: Test connection
    print("\n1️⃣  Testing database connection...")
    print(f"   Database: {DATABASE_URL.split('@')[1] if '@' in DATABASE_URL else 'hidden'}")

    if not test_db_connection():
        print("   ❌ Database connection failed!")
        print("   Please check:")
        print("   - PostgreSQL is running")
        print("   - Database exists")
        print("   - .env configuration is correct")
        return 1
    print("   ✅ Database connected successfully")

    # Step 2: Create tables
    print("\n2️⃣  Creating tables...")
    try:
        init_db()
    except Exception as e:
        print(f"   ❌ Error: {e}")
        return 1
    print("   ✅ Tables created")

    # Step 3: Verify tables
    print("\n3️⃣  Verifying database tables...")
    try:
        from sqlalchemy import inspect

        tables = inspect(engine).get_table_names()
        missing = [t for t in EXPECTED_TABLES if t not in tables]

        if missing:
            print(f"   ⚠️  Missing tables: {', '.join(missing)}")
            return 1
        print(f"   ✅ All {len(EXPECTED_TABLES)} tables created")
        for table in EXPECTED_TABLES:
            print(f"      ✓ {table}")
    except Exception as e:
        print(f"   ⚠️  Could not verify tables: {e}")

    print("\n" + "=" * 70)
    print("✅ DATABASE SETUP COMPLETE!")
    print("=" * 70)
    print("\n🚀 Start Application:")
    print("   python -m uvicorn callwave.main:app --reload --host 0.0.0.0 --port 8000")
    print("   Visit: http://localhost:8000/docs")
    print("\n" + "=" * 70)

    return 0


if __name__ == "__main__":
    sys.exit(setup())

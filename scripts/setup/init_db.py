# scripts/setup/init_db.py
"""
Initialize database — creates all tables and seeds the default tenant.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py [--sample-areas] [--reset]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from crowdwatch.database import create_tables, drop_tables, engine, SessionLocal
from crowdwatch.config import settings
from crowdwatch.services.tenant_service import seed_defaults
from sqlalchemy import inspect, text


def main():
    parser = argparse.ArgumentParser(description="Create CrowdWatch tables and seed defaults")
    parser.add_argument("--sample-areas", action="store_true", help="Create sample areas for the default tenant")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first (destroys data)")
    args = parser.parse_args()

    print("🗄️  CrowdWatch DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nMake sure PostgreSQL is running:")
        print("  docker-compose up -d db")
        print("  # or: sudo systemctl start postgresql")
        sys.exit(1)

    if args.reset:
        print("\n🧹 Dropping tables...")
        drop_tables()

    print("\n📋 Creating tables...")
    create_tables()
    print("✅ All tables created")

    db = SessionLocal()
    try:
        seed_defaults(db, settings.DEFAULT_TENANT_EMAIL, settings.DEFAULT_TENANT_NAME,
                      sample_areas=args.sample_areas or settings.SEED_SAMPLE_AREAS)
    finally:
        db.close()
    print(f"✅ Default tenant: {settings.DEFAULT_TENANT_EMAIL}")

    tables = sorted(inspect(engine).get_table_names())
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    print("\n🎉 Database ready! You can now start the backend:")
    print("   uvicorn crowdwatch.main:app --host 0.0.0.0 --port 8080 --reload")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Database seeding script for NAMASTE → ICD-11 code mappings

Loads a CSV of mappings (data/codemap_seed.csv by default) through the
same importer the upload endpoint uses, so pairs that already exist are
skipped and the script can be re-run safely.

Usage:
    python scripts/seed_codemap.py [path/to/mappings.csv]
"""
import argparse
import sys
from pathlib import Path

# Add parent directory to path to import caresync modules
sys.path.append(str(Path(__file__).parent.parent))

from caresync.codemap import CodeMapImporter
from caresync.config import settings
from caresync.database import SessionLocal, engine
from caresync.gateway import CodeMapGateway
from caresync.models import Base

DEFAULT_CSV = Path(__file__).parent.parent / "data" / "codemap_seed.csv"


def seed_codemap(csv_path: Path):
    """Import every mapping in csv_path that is not stored yet"""
    if not csv_path.exists():
        print(f"⚠️  Mapping file not found: {csv_path}")
        return

    # Create all tables
    Base.metadata.create_all(bind=engine)

    with open(csv_path, "r", encoding="utf-8") as f:
        text = f.read()

    db = SessionLocal()
    try:
        importer = CodeMapImporter(
            CodeMapGateway(db),
            check_batch_size=settings.import_check_batch_size,
            insert_batch_size=settings.import_insert_batch_size,
        )
        result = importer.import_text(text)
    finally:
        db.close()

    print(f"\n✅ Code map seeding complete!")
    print(f"   {result.summary()}")
    if result.dropped:
        print(f"   Dropped: {result.dropped} rows without both codes")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the codemap table from a CSV file")
    parser.add_argument("csv_path", nargs="?", default=str(DEFAULT_CSV), help="CSV of mappings")
    args = parser.parse_args()

    print("📋 Seeding code mappings...\n")
    try:
        seed_codemap(Path(args.csv_path))
    except Exception as e:
        print(f"\n❌ Error seeding code mappings: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

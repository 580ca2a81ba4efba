#!/usr/bin/env python3
"""
Seed team profiles and meeting locations.

Profiles normally come from the identity provider; this script fills a local
database so the app can be exercised without one. Existing profiles and
locations (matched by name) are left untouched.

Usage:
    python scripts/seed_team.py [--file team.json] [--dry-run]

The optional JSON file has the shape::

    {
        "profiles": [{"full_name": "Ana Souza", "role": "Administrador"}],
        "locations": [{"name": "Sala 1", "has_conflict_control": true}]
    }

Options:
    --file       Team definition to load instead of the built-in sample
    --dry-run    Show what would be created without making changes
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from agenda.core.database import create_db_and_tables, session_factory
from agenda.models import Location, Profile
from agenda.store.base import Entity
from agenda.store.feed import ChangeFeed
from agenda.store.sql import SQLRecordStore

SAMPLE_TEAM = {
    "profiles": [
        {"full_name": "Ana Souza", "role": "Administrador", "observations": "Coordenação"},
        {"full_name": "Bruno Lima", "observations": "Comercial"},
        {"full_name": "Carla Mendes", "observations": "Financeiro"},
        {"full_name": "Diego Rocha", "observations": "Operações"},
    ],
    "locations": [
        {"name": "Sala de Reunião", "color": "#2563eb", "has_conflict_control": True},
        {"name": "Auditório", "color": "#16a34a", "has_conflict_control": True},
        {"name": "Externo", "color": "#64748b"},
    ],
}


def load_team(path: str | None) -> dict:
    """Read the team definition, falling back to the sample team."""
    if path is None:
        return SAMPLE_TEAM
    with open(path, encoding="utf-8") as f:
        return json.load(f)


async def seed(team: dict, dry_run: bool = False):
    """Create the missing profiles and locations."""
    await create_db_and_tables()
    store = SQLRecordStore(session_factory, ChangeFeed())

    existing_profiles = {p.full_name for p in await store.find(Entity.profile)}
    existing_locations = {loc.name for loc in await store.find(Entity.location)}

    new_profiles = [p for p in team.get("profiles", []) if p["full_name"] not in existing_profiles]
    new_locations = [loc for loc in team.get("locations", []) if loc["name"] not in existing_locations]

    print(f"Profiles:  {len(new_profiles)} new, {len(existing_profiles)} existing")
    for data in new_profiles:
        print(f"  + {data['full_name']} ({data.get('role', 'Normal')})")
    print(f"Locations: {len(new_locations)} new, {len(existing_locations)} existing")
    for data in new_locations:
        control = " [conflict control]" if data.get("has_conflict_control") else ""
        print(f"  + {data['name']}{control}")

    if dry_run:
        print("\n--- DRY RUN: No changes made ---")
        return

    for data in new_profiles:
        profile = await store.insert(Entity.profile, Profile(**data))
        print(f"Created profile {profile.full_name}: {profile.id}")
    for data in new_locations:
        location = await store.insert(Entity.location, Location(**data))
        print(f"Created location {location.name}: {location.id}")

    print(f"\nComplete: {len(new_profiles)} profile(s), {len(new_locations)} location(s) created")


def main():
    parser = argparse.ArgumentParser(description="Seed team profiles and locations")
    parser.add_argument("--file", help="JSON team definition")
    parser.add_argument("--dry-run", action="store_true", help="Show changes without writing")
    args = parser.parse_args()

    asyncio.run(seed(load_team(args.file), dry_run=args.dry_run))


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Seed script to create demo agents for development and testing.

Run this script after migrations. The printed agent IDs are what the
dashboard sends as ``agentId`` in ``agent:online`` and ``agent:message``.

Usage:
    python scripts/seed_data.py
"""

import asyncio
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from app.core.config import settings
from app.core.security import hash_password
from app.db.postgres import AsyncSessionLocal, close_postgres
from app.domains.agent.models import Agent
from app.domains.agent.repository import AgentRepository

DEMO_AGENTS = [
    ("admin@demo-company.com", "Demo Admin", "admin123!"),
    ("agent@demo-company.com", "Demo Agent", "agent123!"),
]


async def seed_database():
    """Create initial seed data."""
    async with AsyncSessionLocal() as db:
        # Check if data already exists
        result = await db.execute(select(Agent).limit(1))
        if result.scalar_one_or_none():
            print("Database already has agents. Skipping seed.")
            return

    print("Creating seed data...")
    print("-" * 50)

    repository = AgentRepository(AsyncSessionLocal)
    for email, name, password in DEMO_AGENTS:
        agent = await repository.create(
            Agent(email=email, name=name, password_hash=hash_password(password))
        )
        print(f"\nCreated Agent: {agent.name}")
        print(f"  ID: {agent.id}")
        print(f"  Email: {agent.email}")
        print(f"  Password: {password}")

    print("\n" + "=" * 50)
    print("Seed data created successfully!")
    print("=" * 50)


async def main():
    """Main entry point."""
    print(f"Environment: {settings.environment}")
    print(f"Database: {settings.postgres_host}:{settings.postgres_port}/{settings.postgres_db}")
    print()

    try:
        await seed_database()
    finally:
        await close_postgres()


if __name__ == "__main__":
    asyncio.run(main())

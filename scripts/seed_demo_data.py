#!/usr/bin/env python3
"""Seed script to create demo users, companies and partners.

Run after migrations:
    alembic upgrade head
    python scripts/seed_demo_data.py
"""

import asyncio
import random

from nexa_search.domain.models import Company, Partner, User
from nexa_search.infra.db import (
    async_session_context,
    dispose_async_engine,
    get_async_session_factory,
)

USERS = [
    {"name": "Jane Roe", "email": "jane.roe@example.com", "phone": "+1 555 0101", "role": "ADMIN"},
    {"name": "John Doe", "email": "john.doe@example.com", "phone": "+1 555 0102", "role": "MANAGER"},
    {"name": "Amira Haddad", "email": "amira@example.com", "phone": "+44 20 7946 0001", "role": "USER"},
    {"name": "Kenji Sato", "email": "kenji.sato@example.com", "phone": None, "role": "USER"},
    {"name": "Lucia Ferreira", "email": "lucia@example.com", "phone": "+351 21 000 0000", "role": "USER"},
]

COMPANIES = [
    {"name": "Acme Corporation", "code": "ACME", "description": "Industrial supplies and tooling"},
    {"name": "Globex", "code": "GLOBEX", "description": "Energy trading and logistics"},
    {"name": "Initech", "code": "INITECH", "description": "Software consulting"},
]

PARTNERS = [
    {"name": "Northwind Traders", "code": "NW-001", "city": "Seattle", "state": "WA", "country": "USA"},
    {"name": "Contoso Ltd", "code": "CON-002", "city": "London", "state": None, "country": "UK"},
    {"name": "Fabrikam", "code": "FAB-003", "city": "Lisbon", "state": None, "country": "Portugal"},
    {"name": "Tailspin Toys", "code": "TT-004", "city": "Austin", "state": "TX", "country": "USA"},
]


async def seed() -> None:
    session_factory = get_async_session_factory()

    async with async_session_context(session_factory) as session:
        for data in USERS:
            session.add(User(**data))
            print(f"Created user: {data['name']}")

        for data in COMPANIES:
            session.add(Company(**data))
            print(f"Created company: {data['name']}")

        for data in PARTNERS:
            session.add(
                Partner(
                    email=f"contact@{data['code'].lower()}.example.com",
                    partner_type=random.choice(
                        ["customer", "supplier", "vendor"]
                    ),
                    **data,
                )
            )
            print(f"Created partner: {data['name']}")

    await dispose_async_engine()
    print("\nSeed complete!")


if __name__ == "__main__":
    asyncio.run(seed())

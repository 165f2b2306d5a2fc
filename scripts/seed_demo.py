"""Seed a demo production into the database.

Usage:
    python -m scripts.seed_demo [--database-url URL] [--name NAME]

Creates the schema if needed, then one production with three departments
and a user per role. Prints the identity headers to use with the API.
"""

from __future__ import annotations

import argparse
import asyncio
from decimal import Decimal
from uuid import uuid4

from cineexpense.config import get_settings
from cineexpense.database import create_schema, get_engine, make_session_factory
from cineexpense.services.department_service import DepartmentService
from cineexpense.services.production_service import ProductionService
from cineexpense.services.user_service import UserService
from cineexpense.types import Actor, Role

DEPARTMENTS = {
    "Camera": Decimal("25000.00"),
    "Art": Decimal("40000.00"),
    "Wardrobe": Decimal("12000.00"),
}


async def seed(database_url: str, name: str) -> None:
    engine = get_engine(database_url)
    await create_schema(engine)
    factory = make_session_factory(engine)

    try:
        async with factory() as session:
            production = await ProductionService(session).create_production(
                name=name,
                base_currency="USD",
                producer_override_enabled=True,
            )
            # Bootstrap identity: the first admin is created by an admin
            # actor that exists only for this call
            bootstrap = Actor(uuid4(), Role.ADMIN, production.production_id)

            for dept_name, budget in DEPARTMENTS.items():
                await DepartmentService(session).create_department(
                    bootstrap, name=dept_name, allocated_budget=budget
                )

            slug = name.lower().replace(" ", "-")
            users = UserService(session)
            crew = []
            for role in Role:
                user = await users.create_user(
                    bootstrap,
                    name=f"Demo {role.value.title()}",
                    email=f"{role.value.lower()}@{slug}.example",
                    role=role.value,
                )
                crew.append(user)
            await session.commit()
    finally:
        await engine.dispose()

    print(f"Production: {production.name} ({production.production_id})")
    for user in crew:
        print(
            f"  {user.role:<11} X-Actor-ID: {user.user_id}  "
            f"X-Actor-Role: {user.role}  X-Production-ID: {production.production_id}"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo production")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: DATABASE_URL from the environment)",
    )
    parser.add_argument("--name", default="Demo Feature", help="Production name")
    args = parser.parse_args()

    asyncio.run(seed(args.database_url or get_settings().database_url, args.name))


if __name__ == "__main__":
    main()

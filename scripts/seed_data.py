"""Seed data initialization script for RepuestosPro."""

import asyncio
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from repuestos.config.database import AsyncSessionLocal
from repuestos.core.security import generate_referral_code, get_password_hash
from repuestos.models.catalog import Brand, Category, Subcategory
from repuestos.models.user import User

CATEGORIES = {
    "Motor": ["Filtros", "Correas", "Bujías", "Empacaduras", "Bombas de aceite"],
    "Frenos": ["Pastillas", "Discos", "Bandas", "Bombas de freno", "Líquido de frenos"],
    "Suspensión": ["Amortiguadores", "Muelles", "Rótulas", "Terminales", "Bujes"],
    "Transmisión": ["Embragues", "Crucetas", "Tripoides", "Aceite de caja"],
    "Eléctrico": ["Baterías", "Alternadores", "Arranques", "Bombillos", "Sensores"],
    "Enfriamiento": ["Radiadores", "Termostatos", "Bombas de agua", "Mangueras"],
    "Carrocería": ["Espejos", "Faros", "Parachoques", "Manillas"],
    "Lubricantes": ["Aceite de motor", "Grasas", "Aditivos"],
}

BRANDS = [
    ("Toyota", "Japón"),
    ("Chevrolet", "Estados Unidos"),
    ("Ford", "Estados Unidos"),
    ("Hyundai", "Corea del Sur"),
    ("Kia", "Corea del Sur"),
    ("Mitsubishi", "Japón"),
    ("Nissan", "Japón"),
    ("Renault", "Francia"),
    ("Fiat", "Italia"),
    ("Chery", "China"),
    ("Jeep", "Estados Unidos"),
    ("Mazda", "Japón"),
    ("Honda", "Japón"),
    ("Volkswagen", "Alemania"),
    ("Peugeot", "Francia"),
]


async def seed_admin():
    """Create the first admin account."""
    email = os.environ.get("SEED_ADMIN_EMAIL", "admin@piezasya.com").lower()
    password = os.environ.get("SEED_ADMIN_PASSWORD", "Admin123!")

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            print("Admin already exists, skipping...")
            return

        db.add(
            User(
                name="Administrador",
                email=email,
                password_hash=get_password_hash(password),
                role="admin",
                referral_code=generate_referral_code(),
            )
        )
        await db.commit()
        print(f"Created admin: {email}")


async def seed_categories():
    """Create part categories and their subcategories."""
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Category).limit(1))
        if result.scalar_one_or_none():
            print("Categories already exist, skipping...")
            return

        for order, (name, subcategories) in enumerate(CATEGORIES.items()):
            category = Category(name=name, sort_order=order)
            category.subcategories = [
                Subcategory(name=sub, sort_order=i) for i, sub in enumerate(subcategories)
            ]
            db.add(category)

        await db.commit()
        print(f"Created {len(CATEGORIES)} categories")


async def seed_brands():
    """Create vehicle brands common in Venezuela."""
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Brand).limit(1))
        if result.scalar_one_or_none():
            print("Brands already exist, skipping...")
            return

        db.add_all(
            [Brand(name=name, country=country, sort_order=i) for i, (name, country) in enumerate(BRANDS)]
        )
        await db.commit()
        print(f"Created {len(BRANDS)} brands")


async def main():
    print("Seeding RepuestosPro database...")
    await seed_admin()
    await seed_categories()
    await seed_brands()
    print("Seeding complete.")


if __name__ == "__main__":
    asyncio.run(main())

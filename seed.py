"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 3 console operators (password ``dispatch123``)
  - 6 units, one of them inactive
  - 6 clients across the fixed-line, mobile and general collections
"""

import asyncio

from taxidispatch.domain.enums import AddressMode, ClientKind
from taxidispatch.infrastructure.database import async_session_factory, engine
from taxidispatch.infrastructure.models import ClientModel, DriverModel, OperatorModel
from taxidispatch.infrastructure.repositories import OperatorRepository
from taxidispatch.infrastructure.sessions import make_password

SEED_PASSWORD = "dispatch123"

OPERATORS = [
    {"username": "mlopez", "name": "María López"},
    {"username": "jcevallos", "name": "Juan Cevallos"},
    {"username": "acarrion", "name": "Andrea Carrión"},
]

# Long enough to count as real device tokens
_TOKEN = "f" * 152

DRIVERS = [
    {"unit": "12", "name": "Carlos Andrade", "plate": "PBA-1234", "color": "Amarillo", "phone": "0991234567", "estatus": True, "fcm_token": _TOKEN},
    {"unit": "15", "name": "Luis Mendoza", "plate": "PBC-5678", "color": "Amarillo", "phone": "0987654321", "estatus": True, "fcm_token": _TOKEN},
    {"unit": "21", "name": "Jorge Vera", "plate": "PBD-9012", "color": "Blanco", "phone": "0981112233", "estatus": True, "token": _TOKEN},
    {"unit": "27", "name": "Pedro Salazar", "plate": "PBE-3456", "color": "Amarillo", "phone": "0974445566", "estatus": True},
    {"unit": "33", "name": "Diego Paredes", "plate": "PBF-7890", "color": "Amarillo", "phone": "0967778899", "estatus": True, "device_token": _TOKEN},
    {"unit": "40", "name": "Raúl Intriago", "plate": "PBG-2468", "color": "Blanco", "phone": "0953332211", "estatus": False},
]

ADDRESS_AT = "01-10-2026 08:00"


def _address(text: str, coordinates: str = "", mode: AddressMode = AddressMode.MANUAL) -> dict:
    return {
        "address": text,
        "coordinates": coordinates,
        "registered_at": ADDRESS_AT,
        "active": True,
        "mode": mode.value,
        "updated_at": ADDRESS_AT,
    }


CLIENTS = [
    # Fixed lines: doc id is the 7-digit number
    {"kind": ClientKind.FIXED_LINE, "doc_id": "2345678", "name": "Rosa Villacís", "sector": "Centro",
     "addresses": [_address("Av. 9 de Octubre y Boyacá", "-2.1894,-79.8891")]},
    {"kind": ClientKind.FIXED_LINE, "doc_id": "2887766", "name": "Hotel Oro Verde", "sector": "Urdesa",
     "addresses": [_address("Av. 9 de Octubre 414")]},
    # Mobiles: doc id is the number with country code
    {"kind": ClientKind.MOBILE, "doc_id": "593991112222", "name": "Esteban Ruiz", "sector": "Kennedy",
     "addresses": [_address("Kennedy Norte Mz 5", "-2.1700,-79.9000", AddressMode.APLICACION)]},
    # Legacy record keyed by the last 9 digits
    {"kind": ClientKind.MOBILE, "doc_id": "998887777", "name": "Gabriela Torres", "sector": "Samanes",
     "telefono": None, "addresses": [_address("Samanes 6 Mz 920")]},
    # General collection: short id plus phone field
    {"kind": ClientKind.GENERAL, "doc_id": "G-0001", "id_cliente": 12345, "telefono": "593987001122",
     "name": "Corporación Andina", "sector": "Puerto Santa Ana", "addresses": [_address("Edificio The Point, piso 12")]},
    {"kind": ClientKind.GENERAL, "doc_id": "G-0002", "id_cliente": 23456, "telefono": "593986003344",
     "name": "Clínica Kennedy", "sector": "Kennedy", "addresses": []},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        if await OperatorRepository(session).count_active() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Operators ─────────────────────────────────────────────────
        for o in OPERATORS:
            session.add(
                OperatorModel(
                    username=o["username"],
                    name=o["name"],
                    password_hash=make_password(SEED_PASSWORD),
                )
            )
        await session.flush()
        print(f"  Created {len(OPERATORS)} operators")

        # ── Drivers ───────────────────────────────────────────────────
        for d in DRIVERS:
            session.add(DriverModel(**d))
        await session.flush()
        print(f"  Created {len(DRIVERS)} drivers")

        # ── Clients ───────────────────────────────────────────────────
        for c in CLIENTS:
            data = dict(c)
            data.setdefault("telefono", data["doc_id"])
            session.add(ClientModel(**data))
        await session.flush()
        print(f"  Created {len(CLIENTS)} clients")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())

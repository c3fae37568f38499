# scripts/seed_users.py
import asyncio

from pymongo import ReturnDocument

from pharmaroute.core.db import get_client, get_db
from pharmaroute.core.security import create_token
from pharmaroute.schemas import UserIn

USERS = [
    UserIn(name="Admin Droguería", role="admin", cedula="100000", phone="3000000000"),
    UserIn(name="Carlos Rivas", role="agent", cedula="123456", phone="3001112233"),
    UserIn(name="Juan Pérez", role="delivery", cedula="200001", phone="3002223344", status="available"),
    UserIn(name="María Gómez", role="delivery", cedula="200002", phone="3003334455", status="available"),
    UserIn(name="Pedro Ruiz", role="delivery", cedula="200003", phone="3004445566", status="offline"),
]


async def main():
    db = get_db()
    for u in USERS:
        doc = await db.users.find_one_and_update(
            {"cedula": u.cedula},
            {"$set": u.model_dump(exclude={"cedula"})},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        # 12h tokens for local testing against the API
        print(f"- {u.name} | {u.role} | token: {create_token(str(doc['_id']), minutes=720)}")
    get_client().close()

if __name__ == "__main__":
    asyncio.run(main())

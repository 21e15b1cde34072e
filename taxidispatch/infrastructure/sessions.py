"""
Operator sessions.

The console used to keep the logged-in operator in a module-level object
restored from browser storage.  Here a session is an explicit value: created
at login, stored in Redis under ``session:{token}`` with a TTL, loaded per
request by a FastAPI dependency and deleted at logout.

Passwords are Argon2 hashes.
"""

from __future__ import annotations

import json
import secrets
from dataclasses import asdict, dataclass
from typing import Optional

import redis.asyncio as aioredis
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError

password_hasher = PasswordHasher(encoding="utf-8")


def make_password(password: str) -> str:
    return password_hasher.hash(password)


def check_password(password: str, password_hash: str) -> bool:
    try:
        return password_hasher.verify(password_hash, password)
    except (VerificationError, InvalidHash):
        return False


@dataclass(frozen=True)
class OperatorSession:
    token: str
    operator_id: int
    operator_name: str


class SessionStore:
    PREFIX = "session:"

    def __init__(self, client: aioredis.Redis, ttl_seconds: int):
        self.redis = client
        self.ttl = ttl_seconds

    def _key(self, token: str) -> str:
        return f"{self.PREFIX}{token}"

    async def open(self, operator_id: int, operator_name: str) -> OperatorSession:
        session = OperatorSession(
            token=secrets.token_hex(32),
            operator_id=operator_id,
            operator_name=operator_name,
        )
        await self.redis.set(
            self._key(session.token), json.dumps(asdict(session)), ex=self.ttl
        )
        return session

    async def load(self, token: str) -> Optional[OperatorSession]:
        raw = await self.redis.get(self._key(token))
        if not raw:
            return None
        return OperatorSession(**json.loads(raw))

    async def close(self, token: str) -> None:
        await self.redis.delete(self._key(token))

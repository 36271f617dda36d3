# src/pm_privacy/infrastructure/sql_store.py
"""PostgreSQL-backed stores: raw SQL, one short transaction per call."""
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_INSERT_NULLIFIER_SQL = text("""
    INSERT INTO nullifiers (nullifier)
    VALUES (:nullifier)
    ON CONFLICT (nullifier) DO NOTHING
    RETURNING id
""")

_EXISTS_NULLIFIER_SQL = text("""
    SELECT 1 FROM nullifiers WHERE nullifier = :nullifier
""")

_DELETE_NULLIFIER_SQL = text("""
    DELETE FROM nullifiers WHERE nullifier = :nullifier
""")

_COUNT_NULLIFIERS_SQL = text("SELECT COUNT(*) FROM nullifiers")

_INSERT_LEAF_SQL = text("""
    INSERT INTO balance_leaves (leaf_index, commitment)
    VALUES (:leaf_index, :commitment)
""")

_SELECT_LEAVES_SQL = text("""
    SELECT commitment FROM balance_leaves ORDER BY leaf_index ASC
""")


class SqlNullifierStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def contains(self, nullifier: str) -> bool:
        async with self._session_factory() as session:
            row = (await session.execute(_EXISTS_NULLIFIER_SQL, {"nullifier": nullifier})).first()
        return row is not None

    async def add(self, nullifier: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(_INSERT_NULLIFIER_SQL, {"nullifier": nullifier})
            inserted = result.first() is not None
            await session.commit()
        return inserted

    async def discard(self, nullifier: str) -> None:
        async with self._session_factory() as session:
            await session.execute(_DELETE_NULLIFIER_SQL, {"nullifier": nullifier})
            await session.commit()

    async def count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(_COUNT_NULLIFIERS_SQL)
            return int(result.scalar_one())


class SqlBalanceLeafStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def save(self, leaf_index: int, commitment: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                _INSERT_LEAF_SQL, {"leaf_index": leaf_index, "commitment": commitment}
            )
            await session.commit()

    async def load_all(self) -> list[str]:
        async with self._session_factory() as session:
            rows = (await session.execute(_SELECT_LEAVES_SQL)).fetchall()
        return [row.commitment for row in rows]

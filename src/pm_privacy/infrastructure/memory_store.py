"""Process-local stores. State is lost on restart."""


class MemoryNullifierStore:
    def __init__(self) -> None:
        self._spent: set[str] = set()

    async def contains(self, nullifier: str) -> bool:
        return nullifier in self._spent

    async def add(self, nullifier: str) -> bool:
        # No await between the membership test and the insert.
        if nullifier in self._spent:
            return False
        self._spent.add(nullifier)
        return True

    async def discard(self, nullifier: str) -> None:
        self._spent.discard(nullifier)

    async def count(self) -> int:
        return len(self._spent)

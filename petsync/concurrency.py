import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")

async def run_bounded(items: Iterable[T], worker: Callable[[T], Awaitable[R]], limit: int) -> list[R]:
    """
    Запускает worker для каждого элемента, не больше limit одновременно.
    Порядок результатов совпадает с порядком items.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def _run_one(item: T) -> R:
        async with semaphore:
            return await worker(item)

    return await asyncio.gather(*[_run_one(item) for item in items])

class KeyedLock:
    """
    Мьютекс на естественный ключ: одинаковые ключи сериализуются, разные идут параллельно.
    Запись о ключе удаляется, когда его больше никто не держит и не ждет.
    """

    def __init__(self):
        self._locks: dict[Any, asyncio.Lock] = {}
        self._users: dict[Any, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: Any):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

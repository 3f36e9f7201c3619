"""
Producers and consumers sharing a bounded queue, with hooks, timeouts and teardown.

Run: python examples/producer_consumer.py
"""
import asyncio

from async_queue import (
    AsyncQueue,
    ConsoleLogger,
    Duration,
    MetricsRegistry,
    QueueAborted,
    QueueTimeout,
)


async def producer(q: AsyncQueue[int], start: int) -> None:
    for i in range(start, start + 5):
        await q.add(i)
        await asyncio.sleep(0.01)


async def consumer(q: AsyncQueue[int], seen: list) -> None:
    try:
        async for item in q:
            seen.append(item)
    except QueueAborted:
        pass


async def main():
    metrics = MetricsRegistry()
    logger = ConsoleLogger(level="INFO")
    q: AsyncQueue[int] = AsyncQueue(capacity=2, name="work", logger=logger, metrics=metrics)
    q.on_add = lambda item: print("added:", item)
    q.on_remove = lambda item: print("removed:", item)

    seen: list = []
    consumers = [asyncio.create_task(consumer(q, seen)) for _ in range(2)]
    await asyncio.gather(producer(q, 0), producer(q, 100))
    await q.wait()
    print("drained; consumed =>", sorted(seen))

    # A full queue rejects an add that cannot get room in time
    q.on_add = q.on_remove = None
    for c in consumers:
        c.cancel()
    await asyncio.gather(*consumers, return_exceptions=True)
    await q.add_all([1, 2])
    try:
        await q.add(3, timeout=Duration.millis(50))
    except QueueTimeout as ex:
        print("timed out =>", ex)

    print("peek =>", q.peek(), "full =>", q.is_full)
    q.close()
    q.clear()
    print("metrics =>", metrics.snapshot())


if __name__ == "__main__":
    asyncio.run(main())

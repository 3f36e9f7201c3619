import asyncio
import io
import json
import unittest
from contextlib import redirect_stderr

from async_queue import AsyncQueue, ConsoleLogger, MetricsRegistry, QueueTimeout


class TestLogger(unittest.TestCase):
    def test_json_record_with_bound_fields(self):
        log = ConsoleLogger(json_output=True).bind(queue="jobs")
        buf = io.StringIO()
        with redirect_stderr(buf):
            log.info("closed", aborted=2)
        rec = json.loads(buf.getvalue().strip())
        self.assertEqual(rec["level"], "INFO")
        self.assertEqual(rec["msg"], "closed")
        self.assertEqual(rec["fields"], {"queue": "jobs", "aborted": 2})

    def test_level_filter(self):
        log = ConsoleLogger(level="WARN")
        buf = io.StringIO()
        with redirect_stderr(buf):
            log.debug("hidden")
            log.info("hidden")
            log.error("shown", k="v")
        lines = buf.getvalue().strip().splitlines()
        self.assertEqual(len(lines), 1)
        self.assertIn("ERROR: shown k=v", lines[0])
        self.assertEqual(log.level_name, "WARN")


class TestQueueLogging(unittest.IsolatedAsyncioTestCase):
    async def test_default_logger_is_quiet(self):
        buf = io.StringIO()
        with redirect_stderr(buf):
            q: AsyncQueue[int] = AsyncQueue()
            await q.add(1)
            q.close()
            q.clear()
        self.assertEqual(buf.getvalue(), "")

    async def test_close_logged_with_queue_name(self):
        buf = io.StringIO()
        q: AsyncQueue[int] = AsyncQueue(name="jobs", logger=ConsoleLogger(level="INFO", json_output=True))
        taker = asyncio.create_task(q.take())
        await asyncio.sleep(0)
        with redirect_stderr(buf):
            q.close()
        rec = json.loads(buf.getvalue().strip())
        self.assertEqual(rec["msg"], "closed")
        self.assertEqual(rec["fields"]["queue"], "jobs")
        self.assertEqual(rec["fields"]["aborted"], 1)
        with self.assertRaises(Exception):
            await taker

    async def test_failing_hook_is_logged_not_raised(self):
        def boom(_):
            raise RuntimeError("hook broke")

        buf = io.StringIO()
        q: AsyncQueue[int] = AsyncQueue(on_add=boom, logger=ConsoleLogger(level="ERROR"))
        with redirect_stderr(buf):
            await q.add(1)
        self.assertEqual(q.length, 1)
        self.assertIn("on_add hook failed", buf.getvalue())
        self.assertIn("hook broke", buf.getvalue())

    async def test_failing_remove_hook_still_returns_item(self):
        def boom(_):
            raise RuntimeError("remove hook broke")

        buf = io.StringIO()
        q: AsyncQueue[int] = AsyncQueue(on_remove=boom, logger=ConsoleLogger(level="ERROR"))
        await q.add(3)
        with redirect_stderr(buf):
            self.assertEqual(await q.take(), 3)
        self.assertTrue(q.is_empty)
        self.assertIn("on_remove hook failed", buf.getvalue())


class TestQueueMetrics(unittest.IsolatedAsyncioTestCase):
    async def test_counters_and_gauges(self):
        reg = MetricsRegistry()
        q: AsyncQueue[int] = AsyncQueue(capacity=2, name="jobs", metrics=reg)
        await q.add_all([1, 2])
        with self.assertRaises(QueueTimeout):
            await q.add(3, timeout=0.01)
        await q.take()
        await q.add(4)
        waiter = asyncio.create_task(q.add(6))
        await asyncio.sleep(0)
        q.clear()
        with self.assertRaises(Exception):
            await waiter

        snap = reg.snapshot()
        self.assertEqual(snap["queue_added_total|queue=jobs"], 3)
        self.assertEqual(snap["queue_removed_total|queue=jobs"], 1)
        self.assertEqual(snap["queue_timeouts_total|queue=jobs"], 1)
        self.assertEqual(snap["queue_aborted_total|queue=jobs"], 1)
        self.assertEqual(snap["queue_length|queue=jobs"], 0)
        self.assertEqual(snap["queue_high_water|queue=jobs"], 2)

    def test_registry_reuses_labelled_instruments(self):
        reg = MetricsRegistry()
        a = reg.counter("requests_total", labels=(("route", "/a"), ("method", "GET")))
        b = reg.counter("requests_total", labels=(("method", "GET"), ("route", "/a")))
        self.assertIs(a, b)
        a.inc(2)
        self.assertEqual(reg.snapshot()["requests_total|method=GET,route=/a"], 2)

import tempfile
import threading
import time
import unittest
from pathlib import Path

from shot_stack.cache import ExtractionCache
from shot_stack.config import StackConfig
from shot_stack.gate import AnalysisGate
from shot_stack.ingestion import ScreenshotIngestor
from shot_stack.models import RecognitionResult, TextBlock
from shot_stack.pipeline import ScreenshotPipeline, empty_result
from shot_stack.scheduler import ReanalysisScheduler


class SlowRecognizer:
    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def recognize(self, image_path):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(self.delay)
        with self._lock:
            self.active -= 1
        return RecognitionResult(blocks=(TextBlock("Hello there, general text", 0.1, 0.5, 0.5, 0.03),))


def _ingestor(recognizer, *, gate=None, cache=None) -> ScreenshotIngestor:
    return ScreenshotIngestor(
        StackConfig(),
        pipeline=ScreenshotPipeline(recognizer),
        gate=gate or AnalysisGate(2),
        cache=cache or ExtractionCache(),
        store=False,
    )


class AnalysisGateTests(unittest.TestCase):
    def test_never_more_than_capacity(self):
        gate = AnalysisGate(2)
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def work():
            with gate.slot():
                with lock:
                    state["active"] += 1
                    state["peak"] = max(state["peak"], state["active"])
                time.sleep(0.03)
                with lock:
                    state["active"] -= 1

        threads = [threading.Thread(target=work) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(state["peak"], 2)
        self.assertEqual(gate.status(), (0, 0))

    def test_release_without_acquire(self):
        with self.assertRaises(RuntimeError):
            AnalysisGate().release()

    def test_slot_releases_on_error(self):
        gate = AnalysisGate(1)
        with self.assertRaises(ValueError):
            with gate.slot():
                raise ValueError("boom")
        self.assertEqual(gate.status(), (0, 0))

    def test_acquire_timeout(self):
        gate = AnalysisGate(1)
        self.assertTrue(gate.acquire())
        self.assertFalse(gate.acquire(timeout=0.05))
        self.assertEqual(gate.status(), (1, 0))
        gate.release()

    def test_capacity_must_be_positive(self):
        with self.assertRaises(ValueError):
            AnalysisGate(0)

    def test_ingestor_respects_gate(self):
        recognizer = SlowRecognizer(delay=0.03)
        with tempfile.TemporaryDirectory() as tmp:
            image = Path(tmp) / "a.png"
            image.write_bytes(b"x")
            ingestor = _ingestor(recognizer)
            threads = [threading.Thread(target=ingestor.analyze, args=(f"img-{i}", image)) for i in range(5)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
            ingestor.close()
        self.assertEqual(recognizer.calls, 5)
        self.assertLessEqual(recognizer.peak, 2)


class ExtractionCacheTests(unittest.TestCase):
    def test_ttl_expiry(self):
        now = [0.0]
        cache = ExtractionCache(max_size=10, ttl_seconds=10, clock=lambda: now[0])
        cache.mark_completed("a", empty_result("a"))
        now[0] = 9.0
        self.assertTrue(cache.is_cached("a"))
        now[0] = 10.5
        self.assertEqual(cache.stats()["expired"], 1)
        self.assertFalse(cache.is_cached("a"))
        self.assertEqual(len(cache), 0)

    def test_oldest_entry_is_evicted(self):
        cache = ExtractionCache(max_size=2)
        cache.mark_completed("a")
        cache.mark_completed("b")
        cache.mark_completed("a")
        cache.mark_completed("c")
        self.assertFalse(cache.is_cached("b"))
        self.assertTrue(cache.is_cached("a"))
        self.assertTrue(cache.is_cached("c"))

    def test_remove_and_clear(self):
        cache = ExtractionCache()
        cache.mark_completed("a")
        cache.mark_completed("b")
        cache.remove("a")
        self.assertFalse(cache.is_cached("a"))
        cache.clear()
        self.assertEqual(len(cache), 0)


class MemoizedAnalysisTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.image = Path(self.tmp.name) / "shot.png"
        self.image.write_bytes(b"x")

    def tearDown(self):
        self.tmp.cleanup()

    def test_second_request_is_served_from_memo(self):
        recognizer = SlowRecognizer()
        with _ingestor(recognizer) as ingestor:
            first = ingestor.analyze("img", self.image)
            second = ingestor.analyze("img", self.image)
            self.assertIs(first, second)
            self.assertEqual(recognizer.calls, 1)

            third = ingestor.analyze("img", self.image, force=True)
            self.assertEqual(recognizer.calls, 2)
            self.assertIsNot(third, first)
            self.assertIs(ingestor.analyze("img", self.image), third)

    def test_completion_only_memo(self):
        recognizer = SlowRecognizer()
        with _ingestor(recognizer, cache=ExtractionCache(keep_results=False)) as ingestor:
            self.assertIsNotNone(ingestor.analyze("img", self.image))
            self.assertIsNone(ingestor.analyze("img", self.image))
            self.assertEqual(recognizer.calls, 1)

    def test_missing_image_is_not_memoized(self):
        recognizer = SlowRecognizer()
        with _ingestor(recognizer) as ingestor:
            result = ingestor.analyze("ghost", None)
            self.assertTrue(result.is_empty)
            self.assertFalse(ingestor.cache.is_cached("ghost"))
            self.assertEqual(recognizer.calls, 0)

    def test_debounced_reanalysis(self):
        recognizer = SlowRecognizer()
        with _ingestor(recognizer) as ingestor:
            ingestor.analyze("img", self.image)
            ingestor.scheduler = ReanalysisScheduler(ingestor.reanalyze, delay=0.05)
            for _ in range(3):
                ingestor.request_reanalysis("img", self.image)
            time.sleep(0.3)
            self.assertEqual(recognizer.calls, 2)


class ReanalysisSchedulerTests(unittest.TestCase):
    def test_only_last_request_fires(self):
        calls = []
        fired = threading.Event()

        def callback(value):
            calls.append(value)
            fired.set()

        scheduler = ReanalysisScheduler(callback, delay=0.05)
        for value in (1, 2, 3):
            scheduler.schedule(value)
        self.assertTrue(scheduler.pending)
        self.assertTrue(fired.wait(2.0))
        time.sleep(0.1)
        self.assertEqual(calls, [3])
        self.assertFalse(scheduler.pending)

    def test_cancel(self):
        calls = []
        scheduler = ReanalysisScheduler(calls.append, delay=0.05)
        scheduler.schedule("x")
        scheduler.cancel()
        time.sleep(0.15)
        self.assertEqual(calls, [])
        self.assertFalse(scheduler.pending)

    def test_callback_errors_are_contained(self):
        done = threading.Event()

        def boom():
            done.set()
            raise RuntimeError("fail")

        scheduler = ReanalysisScheduler(boom, delay=0.01)
        scheduler.schedule()
        self.assertTrue(done.wait(2.0))


if __name__ == "__main__":
    unittest.main()

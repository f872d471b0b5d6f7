import threading
import time
import unittest

from shared.keyed_lock import KeyedLock


class TestKeyedLock(unittest.TestCase):
    def test_same_key_serializes(self):
        locks = KeyedLock()
        active = []
        overlaps = []

        def worker():
            with locks.hold("vol-1"):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(overlaps, [])

    def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        entered = threading.Event()

        def other():
            with locks.hold("vol-2"):
                entered.set()

        with locks.hold("vol-1"):
            t = threading.Thread(target=other)
            t.start()
            self.assertTrue(entered.wait(timeout=2))
            t.join()

    def test_locks_released_after_use(self):
        locks = KeyedLock()
        with locks.hold("vol-1"):
            self.assertEqual(locks.active_keys(), ["vol-1"])
        self.assertEqual(locks.active_keys(), [])

    def test_released_on_exception(self):
        locks = KeyedLock()
        with self.assertRaises(RuntimeError):
            with locks.hold("vol-1"):
                raise RuntimeError("boom")
        self.assertEqual(locks.active_keys(), [])


if __name__ == "__main__":
    unittest.main()

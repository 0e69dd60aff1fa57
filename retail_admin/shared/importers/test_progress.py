import unittest

from retail_admin.shared.importers.progress import chunked, notify, percentage


class TestPercentage(unittest.TestCase):
    def test_halves_round_up(self) -> None:
        self.assertEqual(percentage(1, 8), 13)
        self.assertEqual(percentage(3, 8), 38)
        self.assertEqual(percentage(1, 3), 33)
        self.assertEqual(percentage(2, 3), 67)
        self.assertEqual(percentage(8, 8), 100)

    def test_empty_total(self) -> None:
        self.assertEqual(percentage(0, 0), 0)


class TestChunked(unittest.TestCase):
    def test_last_batch_is_short(self) -> None:
        self.assertEqual(chunked([1, 2, 3, 4, 5], 2), [[1, 2], [3, 4], [5]])
        self.assertEqual(chunked([], 3), [])

    def test_rejects_zero_size(self) -> None:
        with self.assertRaises(ValueError):
            chunked([1], 0)


class TestNotify(unittest.TestCase):
    def test_raising_callback_is_logged(self) -> None:
        def listener(event):
            raise RuntimeError("listener down")

        with self.assertLogs("retail_admin.shared.importers.progress", level="ERROR") as logs:
            notify(listener, 50)
        self.assertIn("Progress callback raised", logs.output[0])

    def test_none_callback(self) -> None:
        notify(None, 50)


if __name__ == "__main__":
    unittest.main()

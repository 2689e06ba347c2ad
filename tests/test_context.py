import unittest

import numpy as np

from review_sentiment.config import DriverConfig
from review_sentiment.context import ExecutionContext


def _chunk_sum(chunk):
    return int(np.sum(chunk))


def _chunk_list(chunk, offset):
    return [x + offset for x in chunk]


class TestExecutionContext(unittest.TestCase):
    def test_map_partitions_keeps_order(self):
        with ExecutionContext.create(DriverConfig(n_jobs=2, num_partitions=4)) as ctx:
            parts = ctx.map_partitions(_chunk_list, list(range(10)), 100)
        self.assertEqual(len(parts), 4)
        self.assertEqual([x for p in parts for x in p], list(range(100, 110)))

    def test_partition_sums_match_total(self):
        data = np.arange(1000)
        with ExecutionContext.create(DriverConfig(n_jobs=2, num_partitions=3)) as ctx:
            total = sum(ctx.map_partitions(_chunk_sum, data))
        self.assertEqual(total, int(data.sum()))

    def test_fewer_rows_than_partitions(self):
        ctx = ExecutionContext('t', n_jobs=1, num_partitions=8)
        self.assertEqual(ctx.partition_bounds(3), [(0, 1), (1, 2), (2, 3)])
        self.assertEqual(ctx.partition_bounds(0), [(0, 0)])

    def test_close_releases_context(self):
        ctx = ExecutionContext.create(DriverConfig(n_jobs=1))
        self.assertFalse(ctx.closed)
        ctx.close()
        self.assertTrue(ctx.closed)
        with self.assertRaises(RuntimeError):
            ctx.map_partitions(_chunk_sum, [1, 2, 3])
        # closing twice is harmless
        ctx.close()

    def test_scoped_acquisition_closes_on_error(self):
        ctx = ExecutionContext.create(DriverConfig(n_jobs=1))
        with self.assertRaises(KeyError):
            with ctx:
                raise KeyError('boom')
        self.assertTrue(ctx.closed)

    def test_empty_input(self):
        with ExecutionContext.create(DriverConfig(n_jobs=1)) as ctx:
            self.assertEqual(ctx.map_partitions(_chunk_sum, []), [])


if __name__ == '__main__':
    unittest.main()

import unittest

import numpy as np

from review_sentiment.config import DriverConfig
from review_sentiment.context import ExecutionContext
from review_sentiment.data import Record
from review_sentiment.features import HashingTF, hash_features, to_examples


class TestHashFeatures(unittest.TestCase):
    def test_shape_and_counts(self):
        v = hash_features(["good", "good", "movie"], 10000)
        self.assertEqual(v.shape, (1, 10000))
        self.assertEqual(v.sum(), 3.0)
        idx = HashingTF(10000).index_of("good")
        self.assertTrue(0 <= idx < 10000)
        self.assertEqual(v[0, idx], 2.0)

    def test_deterministic(self):
        a = hash_features(["a", "truly", "great", "movie"], 1000)
        b = hash_features(["a", "truly", "great", "movie"], 1000)
        self.assertEqual((a != b).nnz, 0)
        np.testing.assert_array_equal(a.indices, b.indices)

    def test_collisions_accumulate(self):
        v = hash_features(["x", "y", "z"], 1)
        self.assertEqual(v.shape, (1, 1))
        self.assertEqual(v[0, 0], 3.0)

    def test_empty_tokens(self):
        v = hash_features([], 50)
        self.assertEqual(v.nnz, 0)

    def test_invalid_dimension(self):
        with self.assertRaises(ValueError):
            HashingTF(0)


class TestToExamples(unittest.TestCase):
    def _records(self):
        words = ["good", "bad", "fine", "awful", "great", "poor", "nice"]
        return [Record([w, words[(i + 1) % len(words)]], i % 2) for i, w in enumerate(words * 3)]

    def test_labels_and_rows(self):
        records = self._records()
        ex = to_examples(records, 256)
        self.assertEqual(ex.shape, (len(records), 256))
        np.testing.assert_array_equal(ex.labels, [r.label for r in records])

    def test_partitioned_hashing_matches_serial(self):
        records = self._records()
        serial = to_examples(records, 256)
        with ExecutionContext.create(DriverConfig(n_jobs=2, num_partitions=3)) as ctx:
            parallel = to_examples(records, 256, ctx)
        self.assertEqual((serial.features != parallel.features).nnz, 0)
        np.testing.assert_array_equal(serial.labels, parallel.labels)

    def test_empty_input(self):
        ex = to_examples([], 16)
        self.assertEqual(ex.shape, (0, 16))
        self.assertEqual(len(ex), 0)


if __name__ == '__main__':
    unittest.main()

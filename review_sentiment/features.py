from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
import scipy.sparse as sp
from sklearn.feature_extraction.text import HashingVectorizer

from .data import Record


def _as_tokens(doc: Sequence[str]) -> Sequence[str]:
    # Records arrive already tokenized; keep this at module level so the
    # vectorizer stays picklable for process-based workers.
    return doc


class HashingTF:
    """Map token sequences to fixed-size term-count vectors via MurmurHash3.

    Thin wrapper over ``HashingVectorizer`` with raw counts: no alternating
    sign, no normalisation. Distinct tokens that land in the same bucket are
    summed.
    """

    def __init__(self, num_features: int = 10000):
        if num_features < 1:
            raise ValueError(f"num_features must be >= 1, got {num_features}")
        self.num_features = int(num_features)
        self._vec = HashingVectorizer(
            analyzer=_as_tokens,
            n_features=self.num_features,
            alternate_sign=False,
            norm=None,
            dtype=np.float64,
        )

    def transform(self, docs: Sequence[Sequence[str]]) -> sp.csr_matrix:
        return self._vec.transform(list(docs)).tocsr()

    def index_of(self, token: str) -> int:
        return int(self.transform([[token]]).indices[0])


def hash_features(tokens: Sequence[str], dimension: int) -> sp.csr_matrix:
    """Hash one token sequence into a ``1 x dimension`` sparse count row."""
    return HashingTF(dimension).transform([tokens])


@dataclass
class LabeledExamples:
    features: sp.csr_matrix
    labels: np.ndarray

    def __len__(self) -> int:
        return int(self.labels.shape[0])

    def __getitem__(self, idx) -> 'LabeledExamples':
        return LabeledExamples(self.features[idx], self.labels[idx])

    def take(self, indices) -> 'LabeledExamples':
        indices = np.asarray(indices, dtype=int)
        return LabeledExamples(self.features[indices], self.labels[indices])

    @property
    def shape(self):
        return self.features.shape


def _hash_chunk(records: List[Record], num_features: int) -> sp.csr_matrix:
    return HashingTF(num_features).transform([r.text for r in records])


def to_examples(records: List[Record], dimension: int, ctx=None) -> LabeledExamples:
    """Hash every record into a LabeledExamples batch.

    With an execution context the records are hashed per partition and
    stacked back in input order.
    """
    labels = np.fromiter((r.label for r in records), dtype=np.float64, count=len(records))
    if not records:
        return LabeledExamples(sp.csr_matrix((0, dimension), dtype=np.float64), labels)
    if ctx is None:
        parts = [_hash_chunk(records, dimension)]
    else:
        parts = ctx.map_partitions(_hash_chunk, records, dimension)
    return LabeledExamples(sp.vstack(parts, format='csr'), labels)

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

import numpy as np
from sklearn.linear_model import SGDClassifier
from tqdm.auto import tqdm

from .config import DriverConfig
from .features import LabeledExamples


logger = logging.getLogger("review_sentiment")


@dataclass
class LinearSVMModel:
    weights: np.ndarray
    intercept: float = 0.0
    threshold: Optional[float] = 0.0
    loss_history: List[float] = field(default_factory=list)

    def clear_threshold(self) -> 'LinearSVMModel':
        """Make ``predict`` return raw margins instead of 0/1 labels."""
        self.threshold = None
        return self

    def set_threshold(self, threshold: float) -> 'LinearSVMModel':
        self.threshold = float(threshold)
        return self

    def decision_function(self, X) -> np.ndarray:
        return np.asarray(X @ self.weights).ravel() + self.intercept

    def predict(self, X) -> np.ndarray:
        margins = self.decision_function(X)
        if self.threshold is None:
            return margins
        return (margins > self.threshold).astype(np.float64)


def score(model: LinearSVMModel, example) -> float:
    """Raw decision value of a single feature row (or LabeledExamples row)."""
    features = example.features if isinstance(example, LabeledExamples) else example
    values = model.decision_function(features)
    if values.shape[0] != 1:
        raise ValueError(f"score() expects a single example, got {values.shape[0]} rows")
    return float(values[0])


def score_all(model: LinearSVMModel, examples: LabeledExamples, ctx=None) -> np.ndarray:
    """Predict every row; raw margins once the threshold is cleared."""
    if ctx is None or len(examples) == 0:
        return model.predict(examples.features)
    parts = ctx.map_partitions(_score_chunk, examples.features, model)
    return np.concatenate(parts)


def _score_chunk(X, model: LinearSVMModel) -> np.ndarray:
    return model.predict(X)


class Trainer(Protocol):
    def train(self, examples: LabeledExamples, cfg: DriverConfig) -> LinearSVMModel: ...


def _hinge_gradient(chunk: LabeledExamples, weights: np.ndarray) -> Tuple[np.ndarray, float, int]:
    """Summed hinge-loss gradient, summed loss and row count of one partition.

    Labels in {0, 1} are mapped to {-1, +1}; rows with margin >= 1 contribute
    nothing.
    """
    X = chunk.features
    y = 2.0 * chunk.labels - 1.0
    margins = y * np.asarray(X @ weights).ravel()
    active = margins < 1.0
    coef = np.where(active, -y, 0.0)
    grad = np.asarray(X.T @ coef).ravel()
    loss = float(np.sum(1.0 - margins[active]))
    return grad, loss, X.shape[0]


class GradientDescentTrainer:
    """Hinge-loss gradient descent with a squared-L2 updater and no intercept.

    Each iteration sums per-partition gradients through the execution
    context, averages over the (mini-)batch and takes a step of size
    ``step_size / sqrt(t)`` after shrinking the weights by
    ``1 - step * reg_param``. Runs exactly ``iterations`` steps.
    """

    def __init__(self, ctx=None):
        self.ctx = ctx

    def _aggregate(self, batch: LabeledExamples, weights: np.ndarray):
        if self.ctx is None:
            parts = [_hinge_gradient(batch, weights)]
        else:
            parts = self.ctx.map_partitions(_hinge_gradient, batch, weights)
        grad = np.zeros_like(weights)
        loss, count = 0.0, 0
        for g, l, n in parts:
            grad += g
            loss += l
            count += n
        return grad, loss, count

    def train(self, examples: LabeledExamples, cfg: DriverConfig) -> LinearSVMModel:
        n_rows, n_features = examples.shape
        weights = np.zeros(n_features, dtype=np.float64)
        reg_val = 0.0
        history: List[float] = []
        t0 = time.time()
        for i in tqdm(range(1, cfg.iterations + 1), desc="gd svm", unit="iter",
                      leave=False, disable=not cfg.progress):
            if cfg.mini_batch_fraction < 1.0:
                rng = np.random.default_rng(cfg.seed + i)
                batch = examples.take(np.flatnonzero(rng.random(n_rows) < cfg.mini_batch_fraction))
            else:
                batch = examples
            if len(batch) == 0:
                continue
            grad, loss, count = self._aggregate(batch, weights)
            history.append(loss / count + reg_val)
            step = cfg.step_size / np.sqrt(i)
            weights *= 1.0 - step * cfg.reg_param
            weights -= step * (grad / count)
            reg_val = 0.5 * cfg.reg_param * float(weights @ weights)
        logger.info("Gradient descent: %d iterations in %.2fs | final loss=%.4f",
                    cfg.iterations, time.time() - t0, history[-1] if history else float('nan'))
        return LinearSVMModel(weights=weights, loss_history=history)


class SGDTrainer:
    """scikit-learn SGDClassifier with hinge loss, L2 penalty and no intercept."""

    def train(self, examples: LabeledExamples, cfg: DriverConfig) -> LinearSVMModel:
        clf = SGDClassifier(
            loss='hinge',
            penalty='l2',
            alpha=cfg.reg_param,
            fit_intercept=False,
            max_iter=cfg.iterations,
            tol=None,
            random_state=cfg.seed,
        )
        t0 = time.time()
        clf.fit(examples.features, examples.labels)
        logger.info("SGDClassifier fit in %.2fs | epochs=%d", time.time() - t0, clf.n_iter_)
        return LinearSVMModel(weights=np.asarray(clf.coef_, dtype=np.float64).ravel())


def build_trainer(name: str, ctx=None) -> Trainer:
    name = name.lower()
    if name == "gd":
        return GradientDescentTrainer(ctx)
    if name == "sgd":
        return SGDTrainer()
    raise ValueError("Unknown trainer '" + name + "'. Expected one of: gd, sgd")


def train(examples: LabeledExamples, cfg: DriverConfig, ctx=None) -> LinearSVMModel:
    if len(examples) == 0:
        raise ValueError("cannot train on an empty example set")
    return build_trainer(cfg.trainer, ctx).train(examples, cfg)

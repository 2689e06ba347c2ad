from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

import numpy as np
from sklearn.metrics import auc, precision_recall_curve, roc_auc_score, roc_curve


def _check_binary(scores, labels) -> Tuple[np.ndarray, np.ndarray]:
    scores = np.asarray(scores, dtype=np.float64).ravel()
    labels = np.asarray(labels, dtype=np.float64).ravel()
    if scores.shape != labels.shape:
        raise ValueError(f"scores and labels differ in length: {scores.shape[0]} != {labels.shape[0]}")
    present = set(np.unique(labels).tolist())
    if not present <= {0.0, 1.0}:
        raise ValueError(f"labels must be 0/1, got {sorted(present)}")
    if present != {0.0, 1.0}:
        raise ValueError("both classes must be present to compute AUPRC/AUROC")
    return scores, labels


def roc_points(scores, labels) -> Tuple[np.ndarray, np.ndarray]:
    """(FPR, TPR) at every distinct score threshold, from (0, 0) to (1, 1)."""
    scores, labels = _check_binary(scores, labels)
    fpr, tpr, _ = roc_curve(labels, scores, drop_intermediate=False)
    return fpr, tpr


def pr_points(scores, labels) -> Tuple[np.ndarray, np.ndarray]:
    """(recall, precision) ordered from the highest threshold down.

    The curve starts at recall 0 with the precision of the highest threshold
    rather than the conventional precision of 1.
    """
    scores, labels = _check_binary(scores, labels)
    precision, recall, _ = precision_recall_curve(labels, scores)
    # drop the (recall=0, precision=1) sentinel and walk thresholds downwards
    precision, recall = precision[:-1][::-1], recall[:-1][::-1]
    return np.concatenate([[0.0], recall]), np.concatenate([[precision[0]], precision])


def evaluate(scores, labels) -> Dict[str, float]:
    """Area under the precision-recall and ROC curves of raw scores."""
    scores, labels = _check_binary(scores, labels)
    recall, precision = pr_points(scores, labels)
    return {
        'auprc': float(auc(recall, precision)),
        'auroc': float(roc_auc_score(labels, scores)),
    }


def take_score_and_labels(scores, labels, n: int = 10) -> List[Tuple[float, float]]:
    return [(float(s), float(y)) for s, y in zip(scores[:n], labels[:n])]


def take_labels(pairs: List[Tuple[float, float]]) -> List[float]:
    return [y for _, y in pairs]


def save_curves(scores, labels, out_dir: Path) -> None:
    """Save ROC and precision-recall curve plots to ``out_dir``."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    out_dir.mkdir(parents=True, exist_ok=True)
    metrics = evaluate(scores, labels)

    fpr, tpr = roc_points(scores, labels)
    plt.figure(figsize=(4, 4))
    plt.plot(fpr, tpr, label=f"AUROC = {metrics['auroc']:.3f}")
    plt.plot([0, 1], [0, 1], linestyle='--', color='grey', linewidth=0.8)
    plt.xlabel('False positive rate')
    plt.ylabel('True positive rate')
    plt.title('ROC Curve')
    plt.legend(loc='lower right')
    plt.tight_layout()
    plt.savefig(out_dir / 'roc_curve.png', dpi=150)
    plt.close()

    recall, precision = pr_points(scores, labels)
    plt.figure(figsize=(4, 4))
    plt.plot(recall, precision, label=f"AUPRC = {metrics['auprc']:.3f}")
    plt.xlabel('Recall')
    plt.ylabel('Precision')
    plt.ylim(0.0, 1.05)
    plt.title('Precision-Recall Curve')
    plt.legend(loc='lower left')
    plt.tight_layout()
    plt.savefig(out_dir / 'pr_curve.png', dpi=150)
    plt.close()

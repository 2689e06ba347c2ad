from __future__ import annotations

import json
import logging
import sys
import time
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import List, Optional, Sequence, TextIO, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from .config import DriverConfig, TRAINERS
from .context import ExecutionContext
from .data import ensure_output_dirs, load, records_to_frame, save_eda_plots
from .evaluate import evaluate, save_curves, take_labels, take_score_and_labels
from .features import LabeledExamples, to_examples
from .model import LinearSVMModel, score_all, train


def _setup_logging(base_out: Optional[Path], level: str | int = "INFO", filename: str = "run.log") -> logging.Logger:
    if isinstance(level, str):
        lvl = getattr(logging, level.upper(), logging.INFO)
    else:
        lvl = int(level)
    logger = logging.getLogger("review_sentiment")
    logger.setLevel(lvl)
    # Avoid duplicate handlers on repeat runs
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s", "%H:%M:%S")
    ch = logging.StreamHandler()
    ch.setLevel(lvl)
    ch.setFormatter(fmt)
    logger.addHandler(ch)
    if base_out is not None:
        fh = logging.FileHandler(base_out / 'reports' / filename, encoding='utf-8')
        fh.setLevel(lvl)
        fh.setFormatter(fmt)
        logger.addHandler(fh)
    return logger


def split_indices(labels: np.ndarray, train_fraction: float, seed: int,
                  stratify: bool = False) -> Tuple[np.ndarray, np.ndarray]:
    """Seeded index partition into sorted, disjoint train and test indices.

    An unstratified split that leaves either side with a single label is
    redone stratified when the label counts allow it.
    """
    labels = np.asarray(labels)
    idx = np.arange(len(labels))
    train_idx, test_idx = train_test_split(
        idx,
        train_size=train_fraction,
        random_state=seed,
        shuffle=True,
        stratify=(labels if stratify else None),
    )
    n_classes = len(np.unique(labels))
    one_sided = (len(np.unique(labels[train_idx])) < n_classes
                 or len(np.unique(labels[test_idx])) < n_classes)
    if not stratify and n_classes > 1 and one_sided:
        try:
            train_idx, test_idx = train_test_split(
                idx, train_size=train_fraction, random_state=seed, shuffle=True, stratify=labels,
            )
            logging.getLogger("review_sentiment").warning(
                "Random split left a side with a single label; using a stratified split instead")
        except ValueError:
            # too few rows per label to stratify; keep the random split
            pass
    return np.sort(train_idx), np.sort(test_idx)


def split(examples, train_fraction: float, seed: int, stratify: bool = False):
    """Partition ``examples`` (LabeledExamples or a list of Records) in two.

    Input order is preserved within each side.
    """
    if isinstance(examples, LabeledExamples):
        train_idx, test_idx = split_indices(examples.labels, train_fraction, seed, stratify)
        return examples.take(train_idx), examples.take(test_idx)
    labels = np.array([r.label for r in examples])
    train_idx, test_idx = split_indices(labels, train_fraction, seed, stratify)
    return [examples[i] for i in train_idx], [examples[i] for i in test_idx]


def _score_and_evaluate(model: LinearSVMModel, examples: LabeledExamples, ctx=None) -> Tuple[dict, np.ndarray]:
    scores = score_all(model, examples, ctx)
    if len(np.unique(examples.labels)) < 2:
        logging.getLogger("review_sentiment").warning(
            "Test split holds a single label; AUPRC/AUROC are undefined and reported as NaN")
        return {'auprc': float('nan'), 'auroc': float('nan')}, scores
    return evaluate(scores, examples.labels), scores


def evaluate_model(model: LinearSVMModel, examples: LabeledExamples, ctx=None) -> dict:
    """AUPRC and AUROC of the model's predictions on ``examples``.

    Clear the model threshold first to rank by raw margins. A single-label
    example set yields NaN for both areas instead of an error.
    """
    return _score_and_evaluate(model, examples, ctx)[0]


@dataclass
class RunResult:
    metrics: dict
    sample: List[Tuple[float, float]]
    n_train: int
    n_test: int
    model: LinearSVMModel


def print_report(metrics: dict, sample: List[Tuple[float, float]], stream: Optional[TextIO] = None) -> None:
    out = stream if stream is not None else sys.stdout
    auprc, auroc = metrics['auprc'], metrics['auroc']
    print(f"\nArea under precision-recall curve = {auprc} ({auprc * 100} %)\n", file=out)
    print(f"\nFirst {len(sample)} scores: {sample}\n", file=out)
    print(f"First {len(sample)} labels of test movie reviews: {take_labels(sample)}\n\n", file=out)
    print(f"\nArea under ROC = {auroc} ({auroc * 100} %)\n", file=out)


def _write_outputs(base_out: Path, cfg: DriverConfig, metrics: dict, test_scores: np.ndarray,
                   test: LabeledExamples, model: LinearSVMModel, n_train: int) -> None:
    logger = logging.getLogger("review_sentiment")
    reports_dir = base_out / 'reports'
    figures_dir = base_out / 'figures'

    payload = {
        'config': asdict(cfg),
        'n_train': n_train,
        'n_test': len(test),
        'metrics': metrics,
        'final_loss': (model.loss_history[-1] if model.loss_history else None),
    }
    (reports_dir / 'metrics.json').write_text(json.dumps(payload, indent=2))
    logger.info("Wrote metrics → %s", str(reports_dir / 'metrics.json'))

    pd.DataFrame({
        'score': test_scores,
        'y_true': test.labels.astype(int),
        'y_pred': replace(model).set_threshold(0.0).predict(test.features).astype(int),
    }).to_csv(reports_dir / 'test_predictions.csv', index=False)
    logger.info("Wrote test predictions → %s", str(reports_dir / 'test_predictions.csv'))

    if np.isnan(metrics['auroc']):
        logger.warning("Skipping ROC/PR curves: test split holds a single label")
        return
    save_curves(test_scores, test.labels, figures_dir)
    logger.info("Saved ROC/PR curves → %s", str(figures_dir))


def run(cfg: DriverConfig, stream: Optional[TextIO] = None) -> RunResult:
    """Load, hash, split, train, score and report one configuration."""
    cfg.validate()
    base_out = ensure_output_dirs(cfg.outputs_dir) if cfg.outputs_dir else None
    logger = _setup_logging(base_out, cfg.log_level)
    logger.info("Starting run | trainer=%s | input=%s", cfg.trainer, cfg.input_path)

    records = load(cfg.input_path, skip_malformed=cfg.skip_malformed)
    logger.info("Loaded %d records from %s", len(records), cfg.input_path)
    if base_out is not None:
        save_eda_plots(records_to_frame(records), base_out / 'figures')

    with ExecutionContext.create(cfg) as ctx:
        examples = to_examples(records, cfg.dimension, ctx)
        logger.info("Hashed features: %d x %d, nnz=%d", examples.shape[0], examples.shape[1],
                    examples.features.nnz)

        train_set, test_set = split(examples, cfg.train_fraction, cfg.seed, cfg.stratify)
        logger.info("Split: train=%d, test=%d (train_fraction=%.2f, seed=%d)",
                    len(train_set), len(test_set), cfg.train_fraction, cfg.seed)

        t0 = time.time()
        model = train(train_set, cfg, ctx)
        model.clear_threshold()
        logger.info("Fit complete in %.2fs", time.time() - t0)

        metrics, test_scores = _score_and_evaluate(model, test_set, ctx)

    logger.info("Test: auprc=%.4f, auroc=%.4f", metrics['auprc'], metrics['auroc'])
    sample = take_score_and_labels(test_scores, test_set.labels, cfg.sample_size)
    print_report(metrics, sample, stream)

    if base_out is not None:
        _write_outputs(base_out, cfg, metrics, test_scores, test_set, model, len(train_set))

    return RunResult(metrics=metrics, sample=sample, n_train=len(train_set), n_test=len(test_set), model=model)


def build_parser():
    import argparse

    p = argparse.ArgumentParser(description='Train and evaluate a linear SVM on labelled movie reviews.')
    p.add_argument('--input', default='imdb_labelled.txt', help='Tab-separated file of "<review>\\t<0|1>" lines')
    p.add_argument('--dimension', type=int, default=10000, help='Number of hashed features')
    p.add_argument('--train-fraction', type=float, default=0.6, help='Fraction of examples used for training')
    p.add_argument('--seed', type=int, default=11, help='Random seed for the split')
    p.add_argument('--iterations', type=int, default=1000, help='Training iterations')
    p.add_argument('--trainer', default='gd', choices=list(TRAINERS), help='Training algorithm')
    p.add_argument('--step-size', type=float, default=1.0, help='Initial gradient step size (gd)')
    p.add_argument('--reg-param', type=float, default=0.01, help='L2 regularization strength')
    p.add_argument('--mini-batch-fraction', type=float, default=1.0, help='Fraction of rows per gradient step (gd)')
    p.add_argument('--n-jobs', type=int, default=4, help='Parallel workers for the execution context')
    p.add_argument('--prefer', default='threads', choices=['threads', 'processes'], help='joblib worker type')
    p.add_argument('--partitions', type=int, default=None, help='Row partitions (defaults to n-jobs)')
    p.add_argument('--stratify', action='store_true', help='Stratify the train/test split by label')
    p.add_argument('--skip-malformed', action='store_true', help='Skip malformed lines instead of failing')
    p.add_argument('--outputs', default=None, help='Directory for reports and figures (optional)')
    p.add_argument('--sample-size', type=int, default=10, help='Number of (score, label) pairs to print')
    p.add_argument('--log-level', default='INFO', choices=['CRITICAL', 'ERROR', 'WARNING', 'INFO', 'DEBUG'], help='Logging level')
    p.add_argument('--no-progress', action='store_true', help='Disable tqdm progress bars')
    return p


def main(argv: Optional[Sequence[str]] = None) -> None:
    p = build_parser()
    args = p.parse_args(argv)
    cfg = DriverConfig(
        input_path=args.input,
        dimension=args.dimension,
        train_fraction=args.train_fraction,
        seed=args.seed,
        iterations=args.iterations,
        trainer=args.trainer,
        step_size=args.step_size,
        reg_param=args.reg_param,
        mini_batch_fraction=args.mini_batch_fraction,
        stratify=args.stratify,
        skip_malformed=args.skip_malformed,
        n_jobs=args.n_jobs,
        prefer=args.prefer,
        num_partitions=args.partitions,
        outputs_dir=args.outputs,
        sample_size=args.sample_size,
        log_level=args.log_level,
        progress=(not args.no_progress),
    )
    try:
        cfg.validate()
    except ValueError as e:
        p.error(str(e))

    try:
        run(cfg)
    except (OSError, ValueError) as e:
        logging.getLogger("review_sentiment").error("Run aborted: %s", e)
        sys.exit(1)


if __name__ == '__main__':
    main()

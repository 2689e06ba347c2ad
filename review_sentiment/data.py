from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import matplotlib
matplotlib.use("Agg")  # non-interactive backend for saving figures
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns


logger = logging.getLogger("review_sentiment")

LABELS = (0, 1)


class FormatError(ValueError):
    """A line of the input file does not look like ``<text>\\t<0|1>``."""

    def __init__(self, message: str, path: str | None = None, line_no: int | None = None):
        self.path = path
        self.line_no = line_no
        where = ''
        if path is not None and line_no is not None:
            where = f"{path}:{line_no}: "
        elif line_no is not None:
            where = f"line {line_no}: "
        super().__init__(where + message)


@dataclass
class Record:
    text: List[str] = field(default_factory=list)
    label: int = 0


def parse_line(line: str) -> Record:
    """Parse one ``<review text>\\t<label>`` line into a Record.

    The text is split on whitespace; the label must be an integer 0 or 1.
    Fields after the second tab are ignored.
    """
    fields = line.rstrip('\r\n').split('\t')
    if len(fields) < 2:
        raise FormatError("expected '<text>\\t<label>', found no tab separator")
    raw_label = fields[1].strip()
    try:
        label = int(raw_label)
    except ValueError:
        raise FormatError(f"label {raw_label!r} is not an integer") from None
    if label not in LABELS:
        raise FormatError(f"label must be 0 or 1, got {label}")
    return Record(text=fields[0].split(), label=label)


def load(path: str | os.PathLike, skip_malformed: bool = False) -> List[Record]:
    """Read labelled reviews from a tab-separated text file.

    Missing or unreadable files raise the underlying OSError. Malformed lines
    raise FormatError unless ``skip_malformed`` is set, in which case they are
    counted and reported once as a warning.
    """
    records: List[Record] = []
    skipped = 0
    with open(path, encoding='utf-8') as fh:
        for line_no, line in enumerate(fh, start=1):
            try:
                records.append(parse_line(line))
            except FormatError as e:
                if not skip_malformed:
                    raise FormatError(str(e), path=str(path), line_no=line_no) from None
                skipped += 1
                logger.debug("Skipping malformed line %s:%d (%s)", path, line_no, e)
    if skipped:
        logger.warning("Skipped %d malformed line(s) in %s", skipped, path)
    return records


def records_to_frame(records: List[Record]) -> pd.DataFrame:
    """Tabular view with columns 'review', 'label' and 'n_tokens'."""
    return pd.DataFrame({
        'review': [' '.join(r.text) for r in records],
        'label': [r.label for r in records],
        'n_tokens': [len(r.text) for r in records],
    })


def ensure_output_dirs(base_dir: str | os.PathLike) -> Path:
    """Create outputs directory structure and return base path."""
    base = Path(base_dir)
    base.mkdir(parents=True, exist_ok=True)
    (base / 'figures').mkdir(parents=True, exist_ok=True)
    (base / 'reports').mkdir(parents=True, exist_ok=True)
    return base


def save_eda_plots(df: pd.DataFrame, out_dir: str | os.PathLike) -> None:
    """Save label counts and review length per label."""
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    plt.figure(figsize=(5, 4))
    ax = sns.countplot(x='label', data=df)
    ax.set_title('Label Counts')
    ax.set_xlabel('Label')
    ax.set_ylabel('Count')
    for p in ax.patches:
        height = p.get_height()
        ax.annotate(f"{int(height)}", (p.get_x() + p.get_width() / 2.0, height),
                    ha='center', va='bottom', fontsize=8)
    plt.tight_layout()
    plt.savefig(out / 'label_counts.png', dpi=150)
    plt.close()

    plt.figure(figsize=(7, 4))
    ax = sns.barplot(x='label', y='n_tokens', data=df, hue='label', palette='PRGn', legend=False)
    ax.set_title('Average Review Length vs Label')
    ax.set_xlabel('Label')
    ax.set_ylabel('Average Tokens')
    plt.tight_layout()
    plt.savefig(out / 'barplot_label_length.png', dpi=150)
    plt.close()

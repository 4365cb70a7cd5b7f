"""Running aggregates for per-gene DAF and the whole-sample SFS."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np
import pandas as pd

DAF_COLUMNS = ["gene", "DAF", "nSites"]


@dataclass(frozen=True)
class GeneDaf:
    gene: str
    derived: int
    callable: int
    sites: int

    @property
    def daf(self) -> float:
        if self.callable == 0:
            return float("nan")
        return self.derived / self.callable


class GeneDafAggregator:
    """Accumulate derived/callable allele counts for one gene at a time.

    ``enter`` is called whenever a variant lands in a gene and returns the
    finished row of the previous gene when the label changes.  ``finish``
    flushes the last gene at the end of the stream.
    """

    def __init__(self) -> None:
        self.gene: str | None = None
        self.derived = 0
        self.callable = 0
        self.sites = 0

    def _row(self) -> GeneDaf | None:
        if self.gene is None:
            return None
        return GeneDaf(self.gene, self.derived, self.callable, self.sites)

    def enter(self, gene: str) -> GeneDaf | None:
        if gene == self.gene:
            return None
        finished = self._row()
        self.gene = gene
        self.derived = 0
        self.callable = 0
        self.sites = 0
        return finished

    def add(self, derived: int, called: int) -> None:
        if self.gene is None:
            raise RuntimeError("add() called before any gene was entered")
        self.derived += derived
        self.callable += called
        self.sites += 1

    def finish(self) -> GeneDaf | None:
        finished = self._row()
        self.gene = None
        return finished


def summarize_daf(rows: Iterable[GeneDaf]) -> pd.DataFrame:
    records = [{"gene": row.gene, "DAF": row.daf, "nSites": row.sites} for row in rows]
    frame = pd.DataFrame.from_records(records, columns=DAF_COLUMNS)
    frame["DAF"] = frame["DAF"].astype(float)
    frame["nSites"] = frame["nSites"].astype(np.int64)
    return frame


class SiteFrequencySpectrum:
    """Histogram of derived-allele counts over eligible sites."""

    def __init__(self, sample_size: int):
        if sample_size < 0:
            raise ValueError("sample_size must be non-negative")
        self.sample_size = int(sample_size)
        self.counts = np.zeros(self.sample_size + 1, dtype=np.int64)
        self.sites = 0
        self.divergent = 0

    def add(self, derived: int, divergent: bool) -> None:
        if not 0 <= derived <= self.sample_size:
            raise ValueError(f"derived count {derived} outside 0..{self.sample_size}")
        self.counts[derived] += 1
        self.sites += 1
        if divergent:
            self.divergent += 1

    @property
    def segregating(self) -> int:
        return int(self.counts[1:-1].sum()) if self.sample_size > 1 else 0

    def format_lines(self) -> list[str]:
        return [
            " ".join(str(int(c)) for c in self.counts),
            f"{self.sites} {self.divergent}",
        ]

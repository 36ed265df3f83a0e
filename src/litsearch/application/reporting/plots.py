"""
Report Plots - thin matplotlib renderings of the overlap and hit tables.

All plots are written as PNG at 600 dpi on a white background; the Agg
backend is used so no display is needed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
from matplotlib.patches import Circle  # noqa: E402

from litsearch.domain.entities import Source  # noqa: E402

from .tables import OverlapCount  # noqa: E402

logger = logging.getLogger(__name__)

DPI = 600
GREYS = ["0.2", "0.5", "0.8"]


def plot_overlap(
    overlaps: Sequence[OverlapCount],
    path: str | Path,
    xlabel: str = "Search",
    ylabel: str = "Hits",
    figsize: tuple[float, float] = (6.6, 3.5),
) -> Path:
    """
    UpSet-style chart: one bar per combination, membership matrix below.

    Returns:
        Path of the written PNG
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    categories: list[str] = []
    for o in overlaps:
        for c in o.combination:
            if c not in categories:
                categories.append(c)

    fig, (ax_bar, ax_matrix) = plt.subplots(
        2,
        1,
        figsize=figsize,
        sharex=True,
        gridspec_kw={"height_ratios": [3, max(1, len(categories)) * 0.35]},
    )
    fig.patch.set_facecolor("white")

    xs = list(range(len(overlaps)))
    ax_bar.bar(xs, [o.count for o in overlaps], color="0.35")
    ax_bar.set_ylabel(ylabel)
    ax_bar.spines[["top", "right"]].set_visible(False)

    for x, o in zip(xs, overlaps, strict=True):
        rows = [categories.index(c) for c in o.combination]
        ax_matrix.scatter([x] * len(categories), range(len(categories)), color="0.85", s=20)
        ax_matrix.scatter([x] * len(rows), rows, color="0.1", s=20)
        if len(rows) > 1:
            ax_matrix.plot([x, x], [min(rows), max(rows)], color="0.1", linewidth=1)

    ax_matrix.set_yticks(range(len(categories)))
    ax_matrix.set_yticklabels(categories, fontsize=8)
    ax_matrix.set_xticks([])
    ax_matrix.set_xlabel(xlabel)
    ax_matrix.invert_yaxis()
    for spine in ax_matrix.spines.values():
        spine.set_visible(False)

    plt.tight_layout()
    plt.savefig(path, dpi=DPI, facecolor="white")
    plt.close(fig)
    logger.info(f"Saved overlap plot {path}")
    return path


def plot_total_hits(
    totals: Mapping[Source, Mapping[str, int]],
    path: str | Path,
    labels: Mapping[str, str] | None = None,
    source_order: Sequence[Source] = (Source.PUBMED, Source.PMC, Source.EUROPE_PMC),
    figsize: tuple[float, float] = (3.5, 3.35),
) -> Path:
    """
    Total hits per source, stacked by search.

    Args:
        totals: source -> (search id -> hits), e.g. from ``total_hits``
        path: Output PNG
        labels: Legend labels per search id (default: the search id)
        source_order: Bar order
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    labels = labels or {}

    sources = [s for s in source_order if s in totals]
    search_ids: list[str] = []
    for source in sources:
        for name in totals[source]:
            if name not in search_ids:
                search_ids.append(name)

    fig, ax = plt.subplots(figsize=figsize)
    fig.patch.set_facecolor("white")

    xs = list(range(len(sources)))
    bottoms = [0] * len(sources)
    for i, name in enumerate(search_ids):
        heights = [totals[s].get(name, 0) for s in sources]
        ax.bar(
            xs,
            heights,
            bottom=bottoms,
            width=0.8,
            color=GREYS[i % len(GREYS)],
            edgecolor="black",
            linewidth=0.2,
            label=labels.get(name, name),
        )
        bottoms = [b + h for b, h in zip(bottoms, heights, strict=True)]

    ax.set_xticks(xs)
    ax.set_xticklabels([s.label for s in sources], rotation=90)
    ax.set_xlabel("Database")
    ax.set_ylabel("Search Hits")
    ax.spines[["top", "right"]].set_visible(False)
    if search_ids:
        ax.legend(title="Search", fontsize=8, frameon=False)

    plt.tight_layout()
    plt.savefig(path, dpi=DPI, facecolor="white")
    plt.close(fig)
    logger.info(f"Saved total hits plot {path}")
    return path


# Circle centres, region count positions and category label positions for
# one, two and three sets drawn with radius VENN_RADIUS.
VENN_RADIUS = 0.9
_VENN_CENTERS = {
    1: [(0.0, 0.0)],
    2: [(-0.5, 0.0), (0.5, 0.0)],
    3: [(-0.5, 0.3), (0.5, 0.3), (0.0, -0.55)],
}
_VENN_REGIONS = {
    1: {(0,): (0.0, 0.0)},
    2: {(0,): (-0.85, 0.0), (1,): (0.85, 0.0), (0, 1): (0.0, 0.0)},
    3: {
        (0,): (-0.95, 0.55),
        (1,): (0.95, 0.55),
        (2,): (0.0, -1.05),
        (0, 1): (0.0, 0.75),
        (0, 2): (-0.6, -0.35),
        (1, 2): (0.6, -0.35),
        (0, 1, 2): (0.0, 0.0),
    },
}
_VENN_LABELS = {
    1: [(0.0, 1.1)],
    2: [(-0.8, 1.05), (0.8, 1.05)],
    3: [(-1.2, 1.35), (1.2, 1.35), (0.0, -1.65)],
}


def venn_regions(overlaps: Sequence[OverlapCount], categories: Sequence[str]) -> dict[tuple[int, ...], int]:
    """
    Count per Venn region, keyed by the sorted indices of its categories.

    Every region of ``categories`` is present (zero when empty); combinations
    that name a category outside ``categories`` are ignored.

    Raises:
        ValueError: More than three categories
    """
    n = len(categories)
    if not 1 <= n <= 3:
        raise ValueError(f"A Venn diagram needs one to three categories, got {n}")
    index = {c: i for i, c in enumerate(categories)}
    regions = dict.fromkeys(_VENN_REGIONS[n], 0)
    for o in overlaps:
        if all(c in index for c in o.combination):
            regions[tuple(sorted(index[c] for c in o.combination))] += o.count
    return regions


def plot_source_venn(
    overlaps: Sequence[OverlapCount],
    path: str | Path,
    categories: Sequence[str] | None = None,
    figsize: tuple[float, float] = (3.5, 3.5),
) -> Path:
    """
    Venn diagram of identities shared between sources.

    Args:
        overlaps: Exact-combination counts, e.g. from ``source_overlap``
        path: Output PNG
        categories: Circle order (default: first appearance in ``overlaps``)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if categories is None:
        categories = list(dict.fromkeys(c for o in overlaps for c in o.combination))
    regions = venn_regions(overlaps, categories)
    n = len(categories)

    fig, ax = plt.subplots(figsize=figsize)
    fig.patch.set_facecolor("white")

    for i, center in enumerate(_VENN_CENTERS[n]):
        ax.add_patch(
            Circle(center, VENN_RADIUS, facecolor=GREYS[i], edgecolor="black", linewidth=0.5, alpha=0.35)
        )
    for region, (x, y) in _VENN_REGIONS[n].items():
        ax.text(x, y, str(regions[region]), ha="center", va="center", fontsize=8)
    for category, (x, y) in zip(categories, _VENN_LABELS[n], strict=True):
        ax.text(x, y, category, ha="center", va="center", fontsize=9)

    ax.set_xlim(-1.9, 1.9)
    ax.set_ylim(-1.9, 1.7)
    ax.set_aspect("equal")
    ax.axis("off")

    plt.tight_layout()
    plt.savefig(path, dpi=DPI, facecolor="white")
    plt.close(fig)
    logger.info(f"Saved source Venn diagram {path}")
    return path

"""Line-based three-way merge.

Given a common base and two edited versions, non-overlapping edits from both
sides are combined; overlapping edits that disagree are emitted between
conflict markers::

    <<<<<<< ours
    ...
    =======
    ...
    >>>>>>> theirs

Sync regions (line ranges all three texts share) are located with
``difflib.SequenceMatcher``; the stretches between them are resolved
independently.
"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Iterator, Sequence

CONFLICT_START = "<<<<<<<"
CONFLICT_SEPARATOR = "======="
CONFLICT_END = ">>>>>>>"


@dataclass(frozen=True)
class _SyncRegion:
    base_start: int
    base_end: int
    a_start: int
    a_end: int
    b_start: int
    b_end: int


def _intersect(
    ra: tuple[int, int], rb: tuple[int, int]
) -> tuple[int, int] | None:
    start = max(ra[0], rb[0])
    end = min(ra[1], rb[1])
    if start < end:
        return start, end
    return None


def _sync_regions(
    base: Sequence[str], a: Sequence[str], b: Sequence[str]
) -> list[_SyncRegion]:
    a_blocks = SequenceMatcher(None, base, a, autojunk=False).get_matching_blocks()
    b_blocks = SequenceMatcher(None, base, b, autojunk=False).get_matching_blocks()

    regions: list[_SyncRegion] = []
    ia = ib = 0
    while ia < len(a_blocks) and ib < len(b_blocks):
        a_base, a_match, a_len = a_blocks[ia]
        b_base, b_match, b_len = b_blocks[ib]
        overlap = _intersect((a_base, a_base + a_len), (b_base, b_base + b_len))
        if overlap:
            start, end = overlap
            length = end - start
            a_sub = a_match + (start - a_base)
            b_sub = b_match + (start - b_base)
            regions.append(_SyncRegion(start, end, a_sub, a_sub + length, b_sub, b_sub + length))
        if a_base + a_len < b_base + b_len:
            ia += 1
        else:
            ib += 1

    # Sentinel so the tail after the last shared region is handled too.
    regions.append(_SyncRegion(len(base), len(base), len(a), len(a), len(b), len(b)))
    return regions


def merge_regions(
    base: Sequence[str], a: Sequence[str], b: Sequence[str]
) -> Iterator[tuple]:
    """Yield merge regions.

    Each region is one of:
        ``("unchanged", start, end)`` over ``base``,
        ``("same", start, end)`` over ``a`` (both sides made the same edit),
        ``("a", start, end)`` / ``("b", start, end)`` (one side edited),
        ``("conflict", base_start, base_end, a_start, a_end, b_start, b_end)``.
    """
    iz = ia = ib = 0
    for region in _sync_regions(base, a, b):
        if region.a_start > ia or region.b_start > ib or region.base_start > iz:
            a_chunk = a[ia:region.a_start]
            b_chunk = b[ib:region.b_start]
            base_chunk = base[iz:region.base_start]
            if a_chunk == b_chunk:
                if a_chunk or base_chunk:
                    yield ("same", ia, region.a_start)
            else:
                a_unchanged = base_chunk == a_chunk
                b_unchanged = base_chunk == b_chunk
                if a_unchanged:
                    yield ("b", ib, region.b_start)
                elif b_unchanged:
                    yield ("a", ia, region.a_start)
                else:
                    yield (
                        "conflict",
                        iz, region.base_start,
                        ia, region.a_start,
                        ib, region.b_start,
                    )
        if region.base_end > region.base_start:
            yield ("unchanged", region.base_start, region.base_end)
        iz, ia, ib = region.base_end, region.a_end, region.b_end


def _terminated(lines: Sequence[str]) -> list[str]:
    out = list(lines)
    if out and not out[-1].endswith("\n"):
        out[-1] += "\n"
    return out


def merge_lines(
    base: Sequence[str],
    a: Sequence[str],
    b: Sequence[str],
    a_label: str = "ours",
    b_label: str = "theirs",
) -> tuple[bool, list[str]]:
    """Merge line lists (each line keeping its terminator).

    Returns:
        ``(conflicts, merged_lines)``.
    """
    merged: list[str] = []
    conflicts = False
    for region in merge_regions(base, a, b):
        what = region[0]
        if what == "unchanged":
            merged.extend(base[region[1]:region[2]])
        elif what in ("same", "a"):
            merged.extend(a[region[1]:region[2]])
        elif what == "b":
            merged.extend(b[region[1]:region[2]])
        else:
            conflicts = True
            _, _, _, a_start, a_end, b_start, b_end = region
            merged.append(f"{CONFLICT_START} {a_label}\n")
            merged.extend(_terminated(a[a_start:a_end]))
            merged.append(f"{CONFLICT_SEPARATOR}\n")
            merged.extend(_terminated(b[b_start:b_end]))
            merged.append(f"{CONFLICT_END} {b_label}\n")
    return conflicts, merged


def merge_texts(
    base: str,
    ours: str,
    theirs: str,
    ours_label: str = "ours",
    theirs_label: str = "theirs",
) -> tuple[bool, str]:
    """Three-way merge of whole texts.

    Args:
        base: Common ancestor text.
        ours: Our edited text.
        theirs: Their edited text.
        ours_label: Label on the ``<<<<<<<`` marker.
        theirs_label: Label on the ``>>>>>>>`` marker.

    Returns:
        ``(conflicts, merged_text)``.
    """
    conflicts, lines = merge_lines(
        base.splitlines(keepends=True),
        ours.splitlines(keepends=True),
        theirs.splitlines(keepends=True),
        a_label=ours_label,
        b_label=theirs_label,
    )
    return conflicts, "".join(lines)

import asyncio
import logging
import os
from typing import Iterable, List, Pattern, Union

from ...models import Plot, creation_time_from_stat, matches_any_pattern

CATALOG_MAX_DEPTH = 3

# System/bookkeeping directories that never contain archived plots
IGNORED_DIRECTORY_NAMES = frozenset({
    "$RECYCLE.BIN",
    "System Volume Information",
    "lost+found",
    ".Trashes",
    ".Trash-1000",
    ".Spotlight-V100",
    ".fseventsd",
    ".TemporaryItems",
    ".DocumentRevisions-V100",
})


def _scan_eviction_candidates(
    root: str, patterns: List[Union[str, Pattern[str]]], max_depth: int
) -> List[Plot]:
    candidates: List[Plot] = []
    pending = [(root, 0)]

    while pending:
        directory, depth = pending.pop()
        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    try:
                        if entry.is_dir(follow_symlinks=False):
                            if depth < max_depth and entry.name not in IGNORED_DIRECTORY_NAMES:
                                pending.append((entry.path, depth + 1))
                            continue

                        if not entry.is_file():
                            continue

                        path = os.path.abspath(entry.path)
                        if not matches_any_pattern(path, patterns):
                            continue

                        stat_result = entry.stat()
                        candidates.append(
                            Plot(
                                path=path,
                                size_bytes=stat_result.st_size,
                                created_at=creation_time_from_stat(stat_result),
                                is_eviction_candidate=True,
                            )
                        )
                    except OSError as e:
                        logging.warning(f"Skipping {entry.path} while cataloging {root}: {e}")
        except OSError as e:
            logging.warning(f"Cannot list {directory} while cataloging {root}: {e}")

    # Oldest first
    candidates.sort(key=lambda plot: plot.created_at)
    return candidates


async def build_eviction_catalog(
    root: str,
    patterns: Iterable[Union[str, Pattern[str]]],
    max_depth: int = CATALOG_MAX_DEPTH,
) -> List[Plot]:
    """
    Collect every eviction candidate below root (at most max_depth directory
    levels deep), sorted ascending by creation time.
    """
    patterns = list(patterns)
    if not patterns:
        return []

    return await asyncio.to_thread(_scan_eviction_candidates, root, patterns, max_depth)

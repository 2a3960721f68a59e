"""Archive integrity check: every level must have its four published files.

WHY: The catalog API silently hides levels with missing files. After a
conversion run, operators want the list of levels that are still hidden
and why, instead of discovering gaps from the catalog.

RULES:
- Required types: LevelCover, LevelBgm, NewLevelData, BackgroundImage
- Returns levels in archive order, each with its sorted missing types
"""

from __future__ import annotations

from typing import List, Tuple

from chart_converter.store import (
    BACKGROUND_TYPE,
    BGM_TYPE,
    CONVERTED_CHART_TYPE,
    COVER_TYPE,
    ArchiveStore,
)

REQUIRED_FILE_TYPES = frozenset({COVER_TYPE, BGM_TYPE, CONVERTED_CHART_TYPE, BACKGROUND_TYPE})


def find_incomplete_levels(store: ArchiveStore) -> List[Tuple[str, List[str]]]:
    levels = store.all_levels()
    files = store.files_for(level.name for level in levels)
    incomplete = []
    for level in levels:
        present = {f.type for f in files[level.name]}
        missing = sorted(REQUIRED_FILE_TYPES - present)
        if missing:
            incomplete.append((level.name, missing))
    return incomplete

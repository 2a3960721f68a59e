"""Chart Converter — archive-wide LevelData → NewLevelData migration.

WHY: The archive holds thousands of charts in the old engine's numeric
entity format. The new engine models slides as chains of referenced
anchor notes and draws sim-lines between simultaneous notes, none of
which the old format stores explicitly. This package rewrites every
archived chart into the new format and re-publishes it.

HOW: Three stages — convert (pure core: resolver, hidden-tick attachment,
sim-lines), dispatch (rate-limited upload + archive record), serve
(read-only catalog API over the archive). Each stage is independently
testable; I/O collaborators are injected.

RULES:
- The core never touches the network or the database
- A failing chart is skipped, never aborts the batch
- A chart's converted record is written only after successful upload
"""

__version__ = "0.1.0"

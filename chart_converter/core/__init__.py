"""Core conversion modules.

WHY: The core package is the computational heart of the converter — it
turns one chart's source entities into the target format with no I/O.

HOW: ir.py defines the data structures, resolver.py maps entities and
resolves slide endpoints, attachment.py places timing hints on slides,
sim_lines.py links simultaneous notes, converter.py sequences the passes,
and level_data.py handles the gzip+JSON documents.

RULES:
- No network or database access anywhere in this package
- Every chart-fatal problem raises a ConversionError subclass
"""

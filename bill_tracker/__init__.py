"""
Bill Tracker - Source Package

A personal household-bill tracker: recurring and installment bills,
paid/pending status, payer groups and monthly totals, kept both in a
local snapshot and in a remote table for cross-device continuity.

DESIGN PRINCIPLES:
1. Local state is authoritative and usable offline
2. Remote sync never blocks and never reverts a local change
3. Series edits cascade forward, never backward
4. Storage layer is swappable
"""

__version__ = "1.0.0"

"""Transcript reconciliation for photonterm.

Public API:
    TranscriptReconciler -- Suppresses remote echoes of local input
    merge_prompt_and_input -- Optimistic local echo of submitted input
    normalize_newlines -- Canonical line terminators
"""

from photonterm.transcript.reconciler import (
    TranscriptReconciler,
    merge_prompt_and_input,
    normalize_newlines,
)

__all__ = ["TranscriptReconciler", "merge_prompt_and_input", "normalize_newlines"]

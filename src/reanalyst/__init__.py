"""Reanalyst - reanalyze server orchestration and diagnostics for ReScript projects."""

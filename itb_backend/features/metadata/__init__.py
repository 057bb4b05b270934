"""Metadata extraction: chunk selection, strategy dispatch, text parsing and the engine facade."""

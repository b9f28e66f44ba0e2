"""Governed files and team-file ownership."""

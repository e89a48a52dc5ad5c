"""Transcript-driven diagram generation backend."""

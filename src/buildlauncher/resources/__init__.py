"""Packaged JSON schemas for buildlauncher."""

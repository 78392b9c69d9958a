"""Logging and metrics for podwatch."""

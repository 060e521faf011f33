"""Shared utilities: logging, worker pool, prompt sanitizing and numeric helpers."""

"""Persistence gateway protocol and the JSON file store."""

from .project_store import JsonFileProjectStore, PersistenceGateway, generate_project_id

__all__ = ["JsonFileProjectStore", "PersistenceGateway", "generate_project_id"]

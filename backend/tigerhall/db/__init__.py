"""Persistence and cache adapters.

Submodules:
    - models: Tiger and Sighting dataclasses.
    - database: SightingRepositoryProtocol with in-memory and PostgreSQL
      implementations.
    - cache: Read-through CacheRepository over Redis or an in-memory client.

Example:
    Use in a service or FastAPI dependency:
        >>> from tigerhall.db import cache, database
        >>> repo = database.get_sighting_repository(settings)
        >>> cache_repo = cache.get_cache_repository(settings)
"""

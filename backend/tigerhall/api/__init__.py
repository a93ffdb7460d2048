"""API router subpackage for the tiger sighting backend.

Submodules:
    - tigers: Endpoints for creating and listing tigers and their sightings.
    - errors: Mapping of service error kinds to HTTP responses.
"""

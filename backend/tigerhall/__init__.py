"""Backend service for recording tigers and their sightings.

Clients create tigers, record sightings (each with a photo, a timestamp
and coordinates) and list tigers by most recent sighting along with each
tiger's sighting history.

- Validates sightings and rejects any more than 5 km from the tiger's
  last known position
- Normalizes every sighting photo to a 250x200 thumbnail
- Stores tigers and sightings in PostgreSQL and keeps the tiger's
  last-seen state in step with its latest sighting
- Serves list queries through a Redis read-through cache that writes
  invalidate

See module sub-docstrings for details on architecture and usage.
"""

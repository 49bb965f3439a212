"""
Core sync engine.

The `VersionChecker` decides whether the cached catalog is current, the
`CatalogLoader` turns that decision into a loaded snapshot, the
`MediaSyncManager` brings referenced media up to date with a bounded worker
pool, and the `DisplayResolver` serves cached media to front ends.
"""

"""Event tracking services: sync engine, match ordering and ranking points."""

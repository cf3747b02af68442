"""
Services for event tracking.

- tba: The Blue Alliance API client, payload schemas and team history stats
- events: event sync engine, match ordering and ranking point extraction
"""

"""
API routes.

- events: live event summary, match schedule, TBA webhook and admin controls
- tba_stats: team history stats (awards, wins, events entered)
"""

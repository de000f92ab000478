"""Ephemeral pings, the matches they turn into, and timed match chat."""

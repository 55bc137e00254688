"""Realtime group chat hub mediating humans and agents in one shared room."""

"""Auto-generated group lobbies spawned from synchronicities."""

"""Nearby-user matching over recent activity observations."""

"""Device sampling, presence and location tracking."""

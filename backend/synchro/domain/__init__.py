"""Domain packages for the synchronicity pipeline."""

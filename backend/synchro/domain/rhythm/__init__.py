"""Daily rhythm profiles and rhythm-based mirror matching."""

"""Activity classification and activity history."""

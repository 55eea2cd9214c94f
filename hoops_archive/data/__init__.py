"""Source data handling."""

"""HTTP surface for the session core."""

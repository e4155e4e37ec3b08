"""Face recognition backends."""

"""HTTP surface of the progress engine."""

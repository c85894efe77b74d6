"""HTTP surface for the summarization engine."""

"""Core building blocks: error taxonomy, similarity scoring, graph analysis, caching."""

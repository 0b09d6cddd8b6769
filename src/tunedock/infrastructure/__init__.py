"""Infrastructure layer: provider loading, persistence and observability."""

"""Infrastructure layer: persistence and outbound delivery adapters."""

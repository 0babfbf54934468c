"""Domain layer: entities, participant references and domain errors."""

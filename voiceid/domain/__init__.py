"""Domain layer - models, identifiers and protocols."""

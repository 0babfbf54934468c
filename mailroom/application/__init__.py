"""Application layer: delivery pipeline and mailbox services."""

"""Package model, position resolution and pagination."""

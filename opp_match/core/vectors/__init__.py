"""Vector entities, policies, filters and the async repository."""

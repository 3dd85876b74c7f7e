"""HTTP endpoint handlers, one module per provider."""

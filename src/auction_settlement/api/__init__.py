"""HTTP surface: routes, dependency providers, middleware."""

"""HTTP surface: routes, middleware and the application factory."""

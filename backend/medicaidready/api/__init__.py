"""HTTP API: routes and shared dependencies."""

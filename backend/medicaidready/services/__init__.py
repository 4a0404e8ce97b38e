"""Business services: webhook reconciliation, signup and providers."""

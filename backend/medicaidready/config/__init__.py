"""Runtime configuration for the MedicaidReady backend."""

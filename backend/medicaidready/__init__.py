"""MedicaidReady backend: subscription access gating and Stripe reconciliation."""

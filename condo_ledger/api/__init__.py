"""HTTP API for the condominium ledger."""

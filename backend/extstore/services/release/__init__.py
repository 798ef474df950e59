"""Release feed processing: asset selection, manifest checks, hashing, reconciliation."""

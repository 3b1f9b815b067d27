"""Challenge records, storage, lifecycle and escrow monitoring."""

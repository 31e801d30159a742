"""HTTP surface for triggering scans and submitting feedback."""

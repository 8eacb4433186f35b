"""HTTP API for UIO9."""

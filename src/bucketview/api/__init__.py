"""HTTP API for bucketview."""

"""bucketview - folder browser for S3-compatible object storage behind Google login."""

__version__ = "0.1.0"

"""blob-cli: upload and download files with Vercel Blob storage."""

__version__ = "1.0.0"

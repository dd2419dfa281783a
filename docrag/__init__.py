"""docrag - tenant-scoped document ingestion and semantic retrieval.

Uploaded files are turned into text by an extraction chain (text layer,
structured PDF parsing, OCR), split into overlapping chunks, embedded, and
stored per company so similarity queries never cross tenants.
"""

__version__ = "0.1.0"

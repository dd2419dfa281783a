"""Command-line tools for docrag.

- ``python -m docrag.cli ingest`` - store and ingest a local file for a company
- ``python -m docrag.cli reprocess`` - re-ingest every stored document of a company
- ``python -m docrag.cli search`` - similarity search inside a company
- ``python -m docrag.cli delete`` - remove a document and its chunks
- ``python -m docrag.cli stats`` - per-company index statistics
"""

"""
SAT prep corpus migration pipeline.

Reads scraped question corpora, normalizes them to the canonical table
layouts and loads them with idempotent batched upserts:

- ingest: corpus readers (one per source)
- normalize: source record -> canonical row
- db: connection handle, schema and batch loader
- postprocess: data-quality fixes over exported CSV
- pipeline: orchestrator and CLI
"""

__version__ = '1.0.0'

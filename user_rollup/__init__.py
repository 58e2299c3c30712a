"""user-rollup: resumable per-user aggregation over an NDJSON record log."""

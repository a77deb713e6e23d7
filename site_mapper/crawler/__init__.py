"""Concurrent crawl engine: robots gate, bounded fetcher, link extractor and orchestrator."""

"""Concurrent crawl pipeline: streams, stage runners, tree crawler, orchestration.

Public API::

    from drugcrawl.pipeline import Pipeline, Stream, run_stage, TreeCrawler
    from drugcrawl.pipeline import scan_drugs, scan_atc_tree
"""

from drugcrawl.pipeline.orchestrator import Pipeline, scan_atc_tree, scan_drugs
from drugcrawl.pipeline.stage import run_stage
from drugcrawl.pipeline.stream import Stream
from drugcrawl.pipeline.tree import TreeCrawler

__all__ = [
    "Pipeline",
    "Stream",
    "TreeCrawler",
    "run_stage",
    "scan_atc_tree",
    "scan_drugs",
]

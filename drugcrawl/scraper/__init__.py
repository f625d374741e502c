"""Scraper package: page fetch and XPath extraction."""

from drugcrawl.scraper.extractor import (
    extract_atc_links,
    extract_drug,
    extract_drug_base_links,
    extract_drug_links,
)
from drugcrawl.scraper.fetcher import fetch_document, make_client
from drugcrawl.scraper.models import Document, Drug, Link, NodeState, TreeNode

__all__ = [
    "fetch_document",
    "make_client",
    "extract_atc_links",
    "extract_drug_base_links",
    "extract_drug_links",
    "extract_drug",
    "Document",
    "Drug",
    "Link",
    "NodeState",
    "TreeNode",
]

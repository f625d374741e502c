"""Pipeline orchestration: wire stages together and hand the result to a sink.

``Pipeline`` only connects streams; the business logic lives in the
extractors and the sinks.  The two concrete scans are built on it:

    scan_drugs     ATC root → ATC categories → drugs → dosages → Drug records → sink
    scan_atc_tree  ATC root → recursive category tree → tree sink
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, List, Optional

import httpx

from drugcrawl.config import Settings
from drugcrawl.observability import RunContext
from drugcrawl.pipeline.stage import Transform, run_stage
from drugcrawl.pipeline.stream import Stream
from drugcrawl.pipeline.tree import TreeCrawler
from drugcrawl.scraper.extractor import (
    extract_atc_links,
    extract_drug,
    extract_drug_base_links,
    extract_drug_links,
)
from drugcrawl.scraper.fetcher import fetch_document, make_client
from drugcrawl.scraper.models import Document, Drug, Link, TreeNode

if TYPE_CHECKING:
    from drugcrawl.sinks.base import RecordSink, TreeSink


@dataclass
class StageSpec:
    name: str
    transform: Transform
    workers: int


class Pipeline:
    """A chain of stages; stage *i*'s output stream is stage *i+1*'s input.

    Usage::

        records = (
            Pipeline(ctx)
            .stage("categories", expand_category, workers=1)
            .stage("items", parse_item, workers=20)
            .run([Link(root_url)])
        )
    """

    def __init__(self, ctx: Optional[RunContext] = None, buffer: int = 1) -> None:
        self.ctx = ctx or RunContext()
        self.buffer = buffer
        self.stages: List[StageSpec] = []

    def stage(self, name: str, transform: Transform, workers: int = 1) -> "Pipeline":
        self.stages.append(StageSpec(name=name, transform=transform, workers=workers))
        return self

    def run(self, seeds: Iterable) -> Stream:
        """Start every stage and return the last stage's output stream."""
        stream: Stream = Stream.of(*seeds)
        for spec in self.stages:
            stream = run_stage(
                stream,
                spec.transform,
                spec.workers,
                ctx=self.ctx,
                name=spec.name,
                buffer=self.buffer,
            )
        return stream


def fetching(
    extract: Callable[[Document], List[Link]],
    client: Optional[httpx.Client] = None,
) -> Callable[[Link], List[Link]]:
    """Stage transform: fetch the link's page and extract links from it."""

    def transform(link: Link) -> List[Link]:
        return extract(fetch_document(link.url, client))

    return transform


def fetching_record(
    extract: Callable[[Document], Drug],
    client: Optional[httpx.Client] = None,
) -> Callable[[Link], List[Drug]]:
    """Stage transform: fetch the link's page and parse it into one record."""

    def transform(link: Link) -> List[Drug]:
        return [extract(fetch_document(link.url, client))]

    return transform


@contextmanager
def _client_scope(client: Optional[httpx.Client]) -> Iterator[httpx.Client]:
    """Yield *client*, or a fresh client closed when the run ends."""
    if client is not None:
        yield client
        return
    with make_client() as own:
        yield own


def scan_drugs(
    cfg: Settings,
    sink: RecordSink,
    ctx: Optional[RunContext] = None,
    client: Optional[httpx.Client] = None,
) -> int:
    """Scrape every drug reachable from the ATC root and stream it into *sink*.

    The first two stages run with a single worker (one root page, one level
    of categories); the dosage and detail stages, which fan out to tens of
    thousands of pages, use ``cfg.workers``.

    Returns:
        The total reported by the sink.
    """
    ctx = ctx or RunContext()
    ctx.logger.info("Start drugs scrapping from %s", cfg.atc_url)

    with _client_scope(client) as http:
        pipeline = (
            Pipeline(ctx, buffer=cfg.stream_buffer)
            .stage("atc", fetching(extract_atc_links, http), workers=1)
            .stage("drug-base", fetching(extract_drug_base_links, http), workers=1)
            .stage("drug-links", fetching(extract_drug_links, http), workers=cfg.workers)
            .stage("drugs", fetching_record(extract_drug, http), workers=cfg.workers)
        )
        records = pipeline.run([Link(url=cfg.atc_url)])
        total = sink.accept(records)

    ctx.logger.info("Pipeline finished: %s", ctx.stats.summary())
    return total


def scan_atc_tree(
    cfg: Settings,
    sink: TreeSink,
    ctx: Optional[RunContext] = None,
    client: Optional[httpx.Client] = None,
) -> TreeNode:
    """Crawl the whole ATC classification and write it through *sink*."""
    ctx = ctx or RunContext()
    root = TreeNode(name=cfg.atc_root_name, link=cfg.atc_url)

    with _client_scope(client) as http:
        crawler = TreeCrawler(
            lambda node: extract_atc_links(fetch_document(node.link, http)),
            ctx=ctx,
            max_workers=cfg.tree_workers or None,
        )
        ctx.logger.info("Load ATC tree recursively")
        crawler.crawl(root)

    ctx.logger.info("Save ATC tree (%d nodes)", root.count())
    sink.write(root)
    return root

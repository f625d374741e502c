"""Recursive crawler that materialises a tree of categories.

Each node is fetched, its child links become child nodes, and every child is
expanded concurrently.  A parent is only marked ``EXPANDED`` once all of its
children have finished; the tree is consumed as one artifact at the end, so
this is join semantics rather than streaming.

Two scheduling modes are available:

* unbounded (``max_workers=None``): every expanded node runs its children in
  a pool sized to the number of children.  Fine for the ATC tree, which is
  shallow and whose branching is fixed by the site.
* bounded (``max_workers=N``): one shared pool of N workers drains the queue
  of pending nodes, and a pending-child counter per node provides the join.
  Use this against wider trees.

Both modes fail fast: a node whose fetch fails is marked ``FAILED``, its
children are never allocated, and the error is re-raised from :meth:`crawl`.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from drugcrawl.observability import RunContext
from drugcrawl.scraper.models import Link, NodeState, TreeNode

Expand = Callable[[TreeNode], List[Link]]

STAGE_NAME = "atc-tree"


class TreeCrawler:
    def __init__(
        self,
        expand: Expand,
        ctx: Optional[RunContext] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be positive or None, got {max_workers}")
        self.expand = expand
        self.ctx = ctx or RunContext()
        self.max_workers = max_workers

        # Bounded-mode bookkeeping, reset by every crawl.
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._error: Optional[BaseException] = None
        self._pending: Dict[TreeNode, int] = {}
        self._parents: Dict[TreeNode, TreeNode] = {}
        self._pool: Optional[ThreadPoolExecutor] = None

    def crawl(self, root: TreeNode) -> TreeNode:
        """Expand *root* and all its descendants; return *root* once complete.

        Raises:
            Exception: The first error raised by ``expand`` for any node.
        """
        if self.max_workers is None:
            self._expand_recursive(root)
        else:
            self._crawl_bounded(root)
        return root

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------
    def _expand_node(self, node: TreeNode) -> List[TreeNode]:
        self.ctx.logger.debug("|-- %s", node.link)
        node.state = NodeState.FETCHING
        try:
            links = self.expand(node)
        except Exception:
            node.state = NodeState.FAILED
            self.ctx.stats.record_failed(STAGE_NAME)
            raise

        children = [TreeNode(name=link.name, link=link.url) for link in links]
        node.set_children(children)
        self.ctx.stats.record_processed(STAGE_NAME, emitted=len(children))
        if not children:
            node.state = NodeState.LEAF
        return children

    # ------------------------------------------------------------------
    # Unbounded mode
    # ------------------------------------------------------------------
    def _expand_recursive(self, node: TreeNode) -> None:
        children = self._expand_node(node)
        if not children:
            return

        with ThreadPoolExecutor(
            max_workers=len(children), thread_name_prefix=STAGE_NAME
        ) as pool:
            futures = [pool.submit(self._expand_recursive, child) for child in children]
        errors = [f.exception() for f in futures if f.exception() is not None]

        if errors:
            node.state = NodeState.FAILED
            raise errors[0]
        node.state = NodeState.EXPANDED

    # ------------------------------------------------------------------
    # Bounded mode
    # ------------------------------------------------------------------
    def _crawl_bounded(self, root: TreeNode) -> None:
        self._done.clear()
        self._error = None
        self._pending.clear()
        self._parents.clear()
        self._pool = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix=STAGE_NAME
        )
        try:
            self._submit(root)
            self._done.wait()
        finally:
            self._pool.shutdown(wait=True, cancel_futures=True)
            self._pool = None

        if self._error is not None:
            raise self._error

    def _submit(self, node: TreeNode) -> None:
        with self._lock:
            # A failure already ended the crawl; queued work is abandoned.
            if self._done.is_set():
                return
            self._pool.submit(self._visit, node)

    def _visit(self, node: TreeNode) -> None:
        if self._done.is_set():
            return
        try:
            children = self._expand_node(node)
        except Exception as exc:
            self._fail(node, exc)
            return

        if not children:
            self._complete(node)
            return

        with self._lock:
            self._pending[node] = len(children)
            for child in children:
                self._parents[child] = node
        for child in children:
            self._submit(child)

    def _complete(self, node: TreeNode) -> None:
        """Report *node* finished and mark every ancestor it completes."""
        with self._lock:
            while True:
                parent = self._parents.pop(node, None)
                if parent is None:
                    self._done.set()
                    return
                self._pending[parent] -= 1
                if self._pending[parent]:
                    return
                del self._pending[parent]
                parent.state = NodeState.EXPANDED
                node = parent

    def _fail(self, node: TreeNode, exc: BaseException) -> None:
        with self._lock:
            if self._error is None:
                self._error = exc
            parent = self._parents.get(node)
            while parent is not None:
                parent.state = NodeState.FAILED
                parent = self._parents.get(parent)
            self._done.set()

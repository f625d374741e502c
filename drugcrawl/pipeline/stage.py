"""Stage runner: a bounded worker pool between two streams.

``run_stage`` starts ``workers`` threads that pull items from the input
stream, run ``transform`` on each, and push every produced item onto the
output stream one at a time.  A failing item is logged, counted and dropped;
it never reaches the output and never stops the other workers.

No single worker knows when its peers are done, so a separate closer thread
waits on all of them and then closes the output stream, exactly once.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Iterable, List, Optional, TypeVar

from drugcrawl.errors import StreamCancelled
from drugcrawl.observability import RunContext
from drugcrawl.pipeline.stream import Stream

T = TypeVar("T")
U = TypeVar("U")

Transform = Callable[[T], Iterable[U]]


def _work(
    source: Stream[T],
    output: Stream[U],
    transform: Transform,
    ctx: RunContext,
    name: str,
) -> None:
    for item in source:
        if output.cancelled:
            source.cancel()
            return
        try:
            results = list(transform(item))
        except Exception as exc:
            ctx.stats.record_failed(name)
            ctx.logger.error("[%s] %s", name, exc)
            continue

        try:
            for result in results:
                output.put(result)
        except StreamCancelled:
            source.cancel()
            return
        ctx.stats.record_processed(name, emitted=len(results))


def _close_when_done(
    pool: ThreadPoolExecutor,
    futures: List[Future],
    output: Stream,
    ctx: RunContext,
    name: str,
) -> None:
    wait(futures)
    for future in futures:
        exc = future.exception()
        if exc is not None:
            ctx.logger.error("[%s] worker crashed: %r", name, exc)
    output.close()
    pool.shutdown(wait=False)
    ctx.logger.debug("[%s] output closed", name)


def run_stage(
    source: Stream[T],
    transform: Transform,
    workers: int,
    ctx: Optional[RunContext] = None,
    name: str = "stage",
    buffer: int = 1,
) -> Stream[U]:
    """Consume *source* with *workers* threads and return the output stream.

    Args:
        source: Input stream; the stage reads it until it is closed.
        transform: ``item -> iterable of outputs``.  Any exception it raises
            drops that one item.
        workers: Pool size.  ``1`` processes the input strictly in order.
        ctx: Run context receiving log lines and per-stage counters.
        name: Stage name used in logs, counters and thread names.
        buffer: Capacity of the output stream.

    Returns:
        A stream that closes once every input item has been handled.
    """
    if workers < 1:
        raise ValueError(f"Stage {name!r} needs at least one worker, got {workers}")
    ctx = ctx or RunContext()
    output: Stream[U] = Stream(maxsize=buffer)

    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=name)
    futures = [
        pool.submit(_work, source, output, transform, ctx, name)
        for _ in range(workers)
    ]
    closer = threading.Thread(
        target=_close_when_done,
        args=(pool, futures, output, ctx, name),
        name=f"{name}-closer",
        daemon=True,
    )
    closer.start()
    return output

"""Drain the embedding job queue from the command line.

Usage::

    python scripts/process_embedding_queue.py --enqueue-missing
    python scripts/process_embedding_queue.py --limit 50

Ctrl-C stops after the current item; vectors already written stay written
and unreached jobs go back to pending.
"""
import argparse
import asyncio
import signal
import sys
sys.path.insert(0, ".")

import structlog

from photomatch.database import dispose_engine, get_session_factory
from photomatch.repositories.matching_repository import SqlAlchemyMatchingRepository
from photomatch.services.embedding_queue_service import EmbeddingQueueService
from photomatch.services.embedding_service import build_embedding_service

logger = structlog.get_logger("photomatch.scripts.embedding_queue")


async def run(limit, enqueue_missing):
    logger.info("embedding_queue_run", limit=limit, enqueue_missing=enqueue_missing)
    repository = SqlAlchemyMatchingRepository(get_session_factory())
    queue = EmbeddingQueueService(
        queue=repository,
        store=repository,
        embedding_service=build_embedding_service(repository),
    )

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except NotImplementedError:
        pass  # Windows event loops

    try:
        if enqueue_missing:
            queued = await queue.enqueue_missing()
            print(f"  Queued {sum(1 for q in queued if q.created)} new jobs ({len(queued)} targets missing vectors).")

        result = await queue.process_pending(limit=limit, cancel_event=cancel_event)
        print(
            f"  Completed {result.success_count}, failed {result.failure_count}"
            + (" (cancelled)" if result.cancelled else "")
        )
        for item in result.items:
            if not item.success:
                print(f"    FAILED {item.target}: {item.error}")
    finally:
        await dispose_engine()


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--limit", type=int, default=None, help="Maximum jobs to process")
    parser.add_argument(
        "--enqueue-missing",
        action="store_true",
        help="Queue every choice, image and profile without a vector first",
    )
    args = parser.parse_args()
    asyncio.run(run(args.limit, args.enqueue_missing))


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import logging

from iiif_ingest import __version__
from iiif_ingest.application.services.dispatcher_service import Dispatcher, WorkerPool
from iiif_ingest.application.services.pipeline_service import build_pipeline
from iiif_ingest.cli.context import CLIContext
from iiif_ingest.infrastructure.aws.clients import build_clients
from iiif_ingest.infrastructure.aws.s3_store import S3ObjectStore
from iiif_ingest.infrastructure.aws.sqs_queue import SqsQueue

logger = logging.getLogger(__name__)


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("run", help="Start the workers and process queue notifications until killed")
    parser.add_argument(
        "--max-notifications",
        type=int,
        default=None,
        help="Stop receiving after this many notifications have been dispatched (default: never)",
    )
    parser.set_defaults(handler=run, log_base=logging.INFO)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    logger.info("===> iiif-ingest service starting up (version: %s) <===", __version__)
    config = ctx.load_config()
    config.log_summary()

    sqs_client, s3_client = build_clients(max_pool_connections=config.workers + 1)
    message_queue = SqsQueue.from_name(sqs_client, config.in_queue_name)
    pipeline = build_pipeline(config, queue=message_queue, object_store=S3ObjectStore(s3_client))

    pool = WorkerPool(pipeline.process, workers=config.workers, queue_size=config.work_queue_size)
    pool.start()
    dispatcher = Dispatcher(message_queue, pool, poll_timeout_seconds=config.poll_timeout_seconds)

    try:
        dispatched = dispatcher.run(max_notifications=args.max_notifications)
    except KeyboardInterrupt:
        # No drain: in-flight messages are redelivered by the queue.
        logger.warning("interrupted; abandoning in-flight work")
        return 130

    pool.wait_idle()
    logger.info("dispatched %d notifications; exiting", dispatched)
    return 0

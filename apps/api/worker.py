"""RQ worker for detached website generation jobs.

Run one or more of these next to the API when ``GENERATION_EXECUTOR=rq``.
"""

import argparse
import logging

from rq import Worker

from services.generation_queue import GENERATION_QUEUE_NAME, get_redis_connection


def main():
    parser = argparse.ArgumentParser(description="Process queued SiteSwift generations.")
    parser.add_argument("--burst", action="store_true", help="exit once the queue is empty")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    worker = Worker([GENERATION_QUEUE_NAME], connection=get_redis_connection())
    worker.work(burst=args.burst)


if __name__ == "__main__":
    main()

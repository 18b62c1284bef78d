from __future__ import annotations

from alertproc.core.logger import init_logging
from alertproc.core.monitoring import init_monitoring
from alertproc.workers.celery_app import celery_app


def main() -> None:
    """Convenience entrypoint: retention worker with an embedded beat scheduler."""
    init_logging()
    init_monitoring()
    celery_app.worker_main(["worker", "--beat", "--loglevel=info", "--queues=retention"])


if __name__ == "__main__":
    main()

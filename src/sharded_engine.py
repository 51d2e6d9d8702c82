import logging
import threading
from typing import Iterable, List

from ledger import LedgerEngine
from message_queue import PartitionQueue
from models import AccountSnapshot, ProcessingStats, Transaction

logger = logging.getLogger(__name__)


class ShardedLedgerEngine:
    """
    Publisher-consumer variant of the ledger engine.

    Records are routed by client id to one partition per worker, so every record for a
    client is applied by the same worker in arrival order. Each worker owns a private
    LedgerEngine (its own account store and transaction history); nothing mutable is
    shared between workers. Transaction id uniqueness is therefore enforced per partition.
    """

    def __init__(self, num_workers: int = 4):
        if num_workers < 1:
            raise ValueError(f"num_workers must be at least 1, got {num_workers}")
        self._num_workers = num_workers
        self._queues = [PartitionQueue() for _ in range(num_workers)]
        self._engines = [LedgerEngine() for _ in range(num_workers)]
        self._stats = [ProcessingStats() for _ in range(num_workers)]
        self._used = False

    @property
    def num_workers(self) -> int:
        return self._num_workers

    def partition_for(self, client_id: int) -> int:
        return client_id % self._num_workers

    def process(self, records: Iterable[Transaction]) -> ProcessingStats:
        """Route every record to its partition and wait for all partitions to drain."""
        if self._used:
            raise RuntimeError("ShardedLedgerEngine can only process a single stream")
        self._used = True

        logger.info(f"Starting {self._num_workers} partition workers")
        workers = []
        for index in range(self._num_workers):
            worker = threading.Thread(target=self._consume, args=(index,), name=f"ledger-partition-{index}")
            worker.start()
            workers.append(worker)

        try:
            for record in records:
                self._queues[self.partition_for(record.client_id)].publish_message(record)
        finally:
            for queue in self._queues:
                queue.shutdown()
            for worker in workers:
                worker.join()

        stats = ProcessingStats()
        for partition_stats in self._stats:
            stats.merge(partition_stats)
        logger.info(f"Ledger run complete: applied={stats.applied}, rejected={stats.rejected}")
        return stats

    def snapshot(self) -> List[AccountSnapshot]:
        """Merged account states from every partition, ordered by client id."""
        snapshots = []
        for engine in self._engines:
            snapshots.extend(engine.accounts.snapshot_all())
        return sorted(snapshots, key=lambda s: s.client_id)

    def _consume(self, index: int) -> None:
        """Worker loop: drain one partition in order into its own engine."""
        queue = self._queues[index]
        engine = self._engines[index]
        stats = self._stats[index]

        while True:
            record = queue.consume_message()
            if record is None:
                if queue.is_drained():
                    break
                continue
            stats.record(engine.apply(record))

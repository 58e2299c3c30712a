"""Pipeline orchestrator: reader thread feeding the aggregator.

The reader runs in a producer thread and hands each LogPosition over a
single-slot queue, then blocks on queue.join() until the consumer has folded
it. The consumer therefore sees records strictly in log order and the reader
is never more than one record ahead. Decode errors travel on their own
unbounded queue so reporting them never blocks decoding.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from user_rollup.aggregator import Aggregator
from user_rollup.checkpoint import CheckpointStore
from user_rollup.errors import DecodeError
from user_rollup.models import LogPosition, UserStat
from user_rollup.reader import OffsetReader, log_size

logger = logging.getLogger(__name__)

_END_OF_STREAM = object()


class PipelineState(Enum):
    INIT = "init"
    STREAMING = "streaming"
    CHECKPOINTING = "checkpointing"
    DRAINING = "draining"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PipelineResult:
    users: dict[int, UserStat]
    user_ids: list[int]
    records_processed: int
    byte_offset: int
    resumed_from: int = 0
    decode_errors: int = 0
    checkpoints_written: int = 0
    errors: list[DecodeError] = field(default_factory=list)


class Pipeline:
    def __init__(self, log_path: str, store: CheckpointStore,
                 checkpoint_interval: int = 100, dedup_scope: str = "global",
                 on_complete: Callable[[dict[int, UserStat], list[int]], None] | None = None,
                 max_kept_errors: int = 100):
        if checkpoint_interval <= 0:
            raise ValueError(f"checkpoint_interval must be positive, got {checkpoint_interval}")
        self._log_path = log_path
        self._store = store
        self._interval = checkpoint_interval
        self._dedup_scope = dedup_scope
        self._on_complete = on_complete
        self._max_kept_errors = max_kept_errors

        self.state = PipelineState.INIT
        self._handoff: queue.Queue = queue.Queue(maxsize=1)
        self._errors: queue.Queue = queue.Queue()
        self._stop = threading.Event()
        self._producer_failure: BaseException | None = None

        self._decode_errors = 0
        self._kept_errors: list[DecodeError] = []
        self._checkpoints_written = 0
        self._last_saved = 0

    def run(self) -> PipelineResult:
        """Load the checkpoint, stream the rest of the log, return the aggregate.

        Failures while loading the checkpoint or opening the log propagate
        before anything is written, so the previous checkpoint survives.
        """
        self.state = PipelineState.INIT
        try:
            snapshot = self._store.load(self._dedup_scope)
            self._store.validate_against(snapshot, log_size(self._log_path))
            aggregator = Aggregator.from_snapshot(snapshot)
            self._last_saved = snapshot.records_processed
            if snapshot.byte_offset:
                logger.info("Resuming %s at offset %d (%d records already processed)",
                            self._log_path, snapshot.byte_offset, snapshot.records_processed)

            reader = OffsetReader(self._log_path, snapshot.byte_offset,
                                  start_line=snapshot.records_processed,
                                  on_error=self._errors.put_nowait)
            with reader:
                producer = threading.Thread(target=self._produce, args=(reader,),
                                            name="rollup-reader", daemon=True)
                producer.start()
                try:
                    records, offset = self._consume(aggregator, snapshot.records_processed,
                                                    snapshot.byte_offset)
                finally:
                    self._stop_producer(producer)

            self.state = PipelineState.DRAINING
            self._drain_errors()
            user_ids = aggregator.sorted_user_ids()
            if self._on_complete is not None:
                self._on_complete(aggregator.users, user_ids)
            if records != self._last_saved:
                self._checkpoint(aggregator, records, offset)
        except Exception:
            self.state = PipelineState.FAILED
            raise

        self.state = PipelineState.DONE
        logger.info("Finished: %d records, %d users, %d malformed lines skipped",
                    records, len(user_ids), self._decode_errors)
        return PipelineResult(
            users=aggregator.users,
            user_ids=user_ids,
            records_processed=records,
            byte_offset=offset,
            resumed_from=snapshot.byte_offset,
            decode_errors=self._decode_errors,
            checkpoints_written=self._checkpoints_written,
            errors=list(self._kept_errors),
        )

    def _produce(self, reader: OffsetReader) -> None:
        try:
            for position in reader:
                if self._stop.is_set():
                    return
                self._handoff.put(position)
                self._handoff.join()
        except Exception as e:
            self._producer_failure = e
        finally:
            if not self._stop.is_set():
                self._handoff.put(_END_OF_STREAM)

    def _consume(self, aggregator: Aggregator, records: int, offset: int) -> tuple[int, int]:
        self.state = PipelineState.STREAMING
        while True:
            item = self._handoff.get()
            try:
                if item is _END_OF_STREAM:
                    break
                position: LogPosition = item
                records += 1
                offset = position.offset
                if position.record is None:
                    self._drain_errors()
                else:
                    aggregator.apply(position.record)

                if records % self._interval == 0:
                    self.state = PipelineState.CHECKPOINTING
                    logger.info("records processed %d, users processed %d",
                                records, len(aggregator.users))
                    self._checkpoint(aggregator, records, offset)
                    self.state = PipelineState.STREAMING
            finally:
                self._handoff.task_done()

        if self._producer_failure is not None:
            raise self._producer_failure
        return records, offset

    def _stop_producer(self, producer: threading.Thread) -> None:
        self._stop.set()
        while producer.is_alive():
            try:
                self._handoff.get_nowait()
                self._handoff.task_done()
            except queue.Empty:
                pass
            producer.join(timeout=0.05)

    def _drain_errors(self) -> None:
        while True:
            try:
                err: DecodeError = self._errors.get_nowait()
            except queue.Empty:
                return
            self._decode_errors += 1
            if len(self._kept_errors) < self._max_kept_errors:
                self._kept_errors.append(err)
            logger.warning("Skipping malformed record at line %d: %s", err.line_number, err.reason)

    def _checkpoint(self, aggregator: Aggregator, records: int, offset: int) -> None:
        self._store.save(aggregator.snapshot(records, offset))
        self._checkpoints_written += 1
        self._last_saved = records
        logger.debug("Checkpoint written to %s at offset %d", self._store.path, offset)

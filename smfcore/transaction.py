"""Transactions and the state machine that drives their life cycle."""

from __future__ import annotations

import itertools
import logging
import queue
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Iterable, Iterator, Optional, Union

log = logging.getLogger(__name__)


class TxnEvent(IntEnum):
    """Stages and outcomes of a transaction's life cycle."""

    INIT = 0
    DECODE = 1
    LOAD_CTXT = 2
    CTXT_POST = 3
    RUN = 4
    PROCESS = 5
    SUCCESS = 6
    FAILURE = 7
    TIMEOUT = 8
    ABORT = 9
    SAVE = 10
    COLLISION = 11
    QUEUE = 12
    END = 13
    EXIT = 14

    def __str__(self) -> str:
        return _EVENT_NAMES[self]


_EVENT_NAMES = {
    TxnEvent.INIT: "TxnEventInit",
    TxnEvent.DECODE: "TxnEventDecode",
    TxnEvent.LOAD_CTXT: "TxnEventLoadCtxt",
    TxnEvent.CTXT_POST: "TxnEventPost",
    TxnEvent.RUN: "TxnEventRun",
    TxnEvent.PROCESS: "TxnEventProcess",
    TxnEvent.SUCCESS: "TxnEventSuccess",
    TxnEvent.FAILURE: "TxnEventFailure",
    TxnEvent.TIMEOUT: "TxnEventTimeout",
    TxnEvent.ABORT: "TxnEventAbort",
    TxnEvent.SAVE: "TxnEventSave",
    TxnEvent.COLLISION: "TxnEventCollision",
    TxnEvent.QUEUE: "TxnEventQueue",
    TxnEvent.END: "TxnEventEnd",
    TxnEvent.EXIT: "TxnEventExit",
}

# A handler returns the next event, optionally paired with an error to report.
HandlerResult = Union[TxnEvent, "tuple[TxnEvent, Optional[BaseException]]"]
Handler = Callable[["Transaction"], HandlerResult]

_txn_ids = itertools.count(1)
_txn_id_lock = threading.Lock()


def next_txn_id() -> int:
    """Allocate the next transaction id (32-bit, wrapping)."""
    with _txn_id_lock:
        return next(_txn_ids) & 0xFFFFFFFF


@dataclass(eq=False)
class Transaction:
    """A unit of work processed by the transaction state machine."""

    req: Any = None
    rsp: Any = None
    msg_type: str = ""
    ctxt: Any = field(default=None, repr=False)
    ctxt_key: str = ""
    priority: int = 0
    err: Optional[BaseException] = None
    next_txn: Optional[Transaction] = field(default=None, repr=False)
    txn_id: int = field(default_factory=next_txn_id)
    start_time: float = field(default_factory=time.monotonic, repr=False)
    end_time: Optional[float] = field(default=None, repr=False)
    status: queue.Queue = field(default_factory=lambda: queue.Queue(maxsize=1), repr=False)

    def __post_init__(self) -> None:
        self.fsm_log = logging.LoggerAdapter(
            log, {"txnid": self.txn_id, "txntype": str(self.msg_type), "ctxtkey": self.ctxt_key}
        )
        self.fsm_log.debug("new txn created")

    def end(self) -> float:
        """Mark the transaction finished and return its execution time in seconds."""
        self.end_time = time.monotonic()
        elapsed = self.end_time - self.start_time
        self.fsm_log.info("txn ended, execution time [%.6fs] ", elapsed)
        return elapsed

    def run_life_cycle(self, fsm: TxnFsm) -> TxnEvent:
        """Drive this transaction (and any chained ones) through the state machine.

        Returns the event that stopped the machine: EXIT or QUEUE.
        """
        txn = self
        next_event = TxnEvent.INIT
        while True:
            current = next_event
            txn.fsm_log.debug("processing event[%s] ", current)
            next_event, err = _outcome(fsm.handler_for(current)(txn))
            if err is not None:
                txn.fsm_log.error("TxnFsm Error, Stage[%s] Err[%s] ", current, err)

            if current is TxnEvent.END and next_event is TxnEvent.RUN:
                if txn.next_txn is not None:
                    txn = txn.next_txn
            elif next_event in (TxnEvent.EXIT, TxnEvent.QUEUE):
                txn.fsm_log.debug("TxnFsm [%s] ", next_event)
                return next_event

    def __str__(self) -> str:
        return f" txn-id [{self.txn_id}], txn-type [{self.msg_type}], txn-key [{self.ctxt_key}] "


def _outcome(result: HandlerResult) -> tuple[TxnEvent, Optional[BaseException]]:
    if isinstance(result, tuple):
        event, err = result
        return TxnEvent(event), err
    return TxnEvent(result), None


class TxnBus:
    """First-in first-out queue of transactions waiting to run."""

    def __init__(self, txns: Iterable[Transaction] = ()) -> None:
        self._txns: deque[Transaction] = deque(txns)

    def add(self, txn: Transaction) -> None:
        self._txns.append(txn)

    def pop(self) -> Optional[Transaction]:
        """Remove and return the oldest transaction, or None when empty."""
        return self._txns.popleft() if self._txns else None

    def __len__(self) -> int:
        return len(self._txns)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(self._txns)


class TxnFsm(ABC):
    """Stage handlers of the transaction state machine.

    Each handler returns the next event, or a ``(next_event, error)`` pair when
    the stage failed but the machine should carry on.
    """

    def handler_for(self, event: TxnEvent) -> Handler:
        """The handler for an event; LookupError for QUEUE and EXIT, which have none."""
        handlers = {
            TxnEvent.INIT: self.txn_init,
            TxnEvent.DECODE: self.txn_decode,
            TxnEvent.LOAD_CTXT: self.txn_load_ctxt,
            TxnEvent.CTXT_POST: self.txn_ctxt_post,
            TxnEvent.RUN: self.txn_ctxt_run,
            TxnEvent.PROCESS: self.txn_process,
            TxnEvent.SUCCESS: self.txn_success,
            TxnEvent.FAILURE: self.txn_failure,
            TxnEvent.TIMEOUT: self.txn_timeout,
            TxnEvent.ABORT: self.txn_abort,
            TxnEvent.SAVE: self.txn_save,
            TxnEvent.COLLISION: self.txn_collision,
            TxnEvent.END: self.txn_end,
        }
        try:
            return handlers[TxnEvent(event)]
        except (KeyError, ValueError):
            raise LookupError(f"no transaction handler for event {event}") from None

    @abstractmethod
    def txn_init(self, txn: Transaction) -> HandlerResult:
        """Initialise the transaction."""

    @abstractmethod
    def txn_decode(self, txn: Transaction) -> HandlerResult:
        """Decode the request."""

    @abstractmethod
    def txn_load_ctxt(self, txn: Transaction) -> HandlerResult:
        """Load the context the transaction works on."""

    @abstractmethod
    def txn_ctxt_post(self, txn: Transaction) -> HandlerResult:
        """Post the transaction to its context."""

    @abstractmethod
    def txn_ctxt_run(self, txn: Transaction) -> HandlerResult:
        """Run the transaction within its context."""

    @abstractmethod
    def txn_process(self, txn: Transaction) -> HandlerResult:
        """Process the request."""

    @abstractmethod
    def txn_success(self, txn: Transaction) -> HandlerResult:
        """Handle successful processing."""

    @abstractmethod
    def txn_failure(self, txn: Transaction) -> HandlerResult:
        """Handle failed processing."""

    @abstractmethod
    def txn_abort(self, txn: Transaction) -> HandlerResult:
        """Abort the transaction."""

    @abstractmethod
    def txn_save(self, txn: Transaction) -> HandlerResult:
        """Persist the transaction's context."""

    @abstractmethod
    def txn_timeout(self, txn: Transaction) -> HandlerResult:
        """Handle a timed-out transaction."""

    @abstractmethod
    def txn_collision(self, txn: Transaction) -> HandlerResult:
        """Handle a collision with another transaction."""

    @abstractmethod
    def txn_end(self, txn: Transaction) -> HandlerResult:
        """Finish the transaction."""
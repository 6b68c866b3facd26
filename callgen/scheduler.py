"""
Planificación de la generación de llamadas.

- Backfill: cursor de ``start`` a ``end`` (excluido) con paso fijo; no suspende.
- Live: un job de ``schedule`` cada ``interval`` sobre un hilo de fondo,
  hasta que alguien active ``stop_event`` (SIGINT/SIGTERM). Al detenerse
  se hace exactamente un vaciado final y no se procesan más ticks.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional

import schedule

from .batch import BatchAccumulator
from .load_model import LoadModel
from .models import Site


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_interval(sites: List[Site], model: LoadModel, batch: BatchAccumulator, at: datetime) -> int:
    """Todas las llamadas de un intervalo; ``maybe_flush`` después de cada sitio."""
    calls = 0
    for site in sites:
        for call in model.calls_for(site, at):
            batch.append(call.to_row())
            calls += 1
        batch.maybe_flush()
    return calls


# --------------------------------------------------------------------------------------
# Backfill
# --------------------------------------------------------------------------------------
@dataclass
class BackfillStats:
    steps: int = 0
    calls: int = 0


def run_backfill(
    sites: List[Site],
    model: LoadModel,
    batch: BatchAccumulator,
    start: datetime,
    end: datetime,
    interval: timedelta,
) -> BackfillStats:
    stats = BackfillStats()
    cursor = start
    while cursor < end:
        stats.calls += generate_interval(sites, model, batch, cursor)
        stats.steps += 1
        cursor += interval

    # Vaciado final obligatorio
    batch.flush()
    logging.info(f"✔ Backfill: {stats.steps} intervalos, {stats.calls:,} llamadas")
    return stats


# --------------------------------------------------------------------------------------
# Live
# --------------------------------------------------------------------------------------
class LiveState(Enum):
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class LiveScheduler:
    def __init__(
        self,
        sites: List[Site],
        model: LoadModel,
        batch: BatchAccumulator,
        interval: timedelta,
        stop_event: Optional[threading.Event] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.sites = sites
        self.model = model
        self.batch = batch
        self.interval = interval
        self.stop_event = stop_event or threading.Event()
        self.clock = clock
        self.state = LiveState.STOPPED
        self.ticks = 0
        self.calls = 0
        self.error: Optional[BaseException] = None
        self._scheduler = schedule.Scheduler()
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> None:
        now = self.clock()
        n = generate_interval(self.sites, self.model, self.batch, now)
        self.ticks += 1
        self.calls += n
        logging.info(f"⏱ Tick {self.ticks} @ {now.isoformat()}: {n:,} llamadas")

    def run(self) -> None:
        """Bucle del worker. Espera el próximo tick o la cancelación, lo que llegue primero."""
        self.state = LiveState.RUNNING
        self._scheduler.every(self.interval.total_seconds()).seconds.do(self.tick)
        try:
            while not self.stop_event.is_set():
                self._scheduler.run_pending()
                idle = self._scheduler.idle_seconds
                self.stop_event.wait(max(idle, 0) if idle is not None else None)

            self.state = LiveState.DRAINING
            logging.info("Cancelación recibida, vaciando lo acumulado…")
            self.batch.flush()
        finally:
            self._scheduler.clear()
            self.state = LiveState.STOPPED
        logging.info(f"✔ Live: {self.ticks} ticks, {self.calls:,} llamadas")

    def _run_capturing(self) -> None:
        try:
            self.run()
        except BaseException as e:  # se relanza en join()
            self.error = e

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self._run_capturing, name="callgen-live", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        self.stop_event.set()

    def join(self) -> None:
        if self._thread is not None:
            # join con timeout para que el hilo principal siga atendiendo señales
            while self._thread.is_alive():
                self._thread.join(0.5)
        if self.error is not None:
            raise self.error

"""
Pipeline completo: topología -> registros estáticos -> métricas de llamadas -> resumen.

Un único flujo parametrizado; backfill/live, sitios degradados, sitios de
baja carga y franja de bajo tráfico son banderas de configuración.
"""

import json
import logging
import random
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from . import snapshot
from .batch import BatchAccumulator
from .config import GeneratorConfig
from .database import QuestDBAdmin
from .errors import SinkError
from .load_model import LoadModel
from .models import Site
from .names import NameAllocator
from .scheduler import LiveScheduler, run_backfill, utcnow
from .sink import RowWriter, writer_factory
from .topology import TopologyGenerator

STATIC_STAGE = "static-record flush"
CALLS_STAGE = "call-metric flush"


class CallGenerator:
    def __init__(
        self,
        config: GeneratorConfig,
        new_writer: Optional[Callable[[], RowWriter]] = None,
        stop_event: Optional[threading.Event] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config.validate()
        self.new_writer = new_writer or writer_factory(config)
        self.stop_event = stop_event or threading.Event()
        self.clock = clock
        self.rng = random.Random(config.seed)
        self.names = NameAllocator(self.rng)
        self.counters: Dict[str, int] = {
            "sites": 0,
            "channels": 0,
            "fleets": 0,
            "talk_groups": 0,
            "units": 0,
            "static_rows": 0,
            "calls": 0,
            "flushes": 0,
            "intervals": 0,
        }

    def _accumulator(self, stage: str) -> BatchAccumulator:
        return BatchAccumulator(
            self.new_writer,
            self.config.flush_batch_size,
            stage=stage,
            output_file=self.config.out_metrics_file,
        )

    # ---------------- Topología ----------------
    def build_topology(self) -> List[Site]:
        if self.config.in_static_file:
            return snapshot.load(self.config.in_static_file)
        logging.info("Generando registros estáticos desde los argumentos")
        return TopologyGenerator(self.config, allocator=self.names, rng=self.rng).generate()

    def save_static_records(self, sites: List[Site], ts: datetime) -> int:
        with self._accumulator(STATIC_STAGE) as batch:
            for site in sites:
                logging.info(f" > Guardando sitio {site.name!r} ({site.id})")
                batch.extend(site.static_rows(ts))
                batch.maybe_flush()
            batch.flush()
            self.counters["flushes"] += batch.flushes
            return batch.total_rows

    # ---------------- Llamadas ----------------
    def generate_calls(self, sites: List[Site]) -> None:
        cfg = self.config
        model = LoadModel(cfg, rng=self.rng)
        with self._accumulator(CALLS_STAGE) as batch:
            if cfg.live:
                live = LiveScheduler(sites, model, batch, cfg.interval, self.stop_event, self.clock)
                logging.info(f"Modo live cada {cfg.interval.total_seconds()}s. Ctrl+C para detener")
                live.start()
                live.join()
                self.counters["intervals"] = live.ticks
                self.counters["calls"] = live.calls
            else:
                logging.info(f"Backfill {cfg.start.isoformat()} -> {cfg.end.isoformat()} cada {cfg.interval}")
                stats = run_backfill(sites, model, batch, cfg.start, cfg.end, cfg.interval)
                self.counters["intervals"] = stats.steps
                self.counters["calls"] = stats.calls
            self.counters["flushes"] += batch.flushes

    # ---------------- Resumen ----------------
    def summary(self) -> dict:
        logging.info("📊 Resumen:")
        for key, value in self.counters.items():
            logging.info(f"  - {key}: {value:,}")
        result = {
            "generation_date": self.clock().isoformat(),
            "mode": "live" if self.config.live else "backfill",
            "counters": self.counters,
        }
        if self.config.verify:
            with QuestDBAdmin(self.config.questdb.pg_params) as admin:
                result["table_counts"] = admin.table_counts()
            for table, count in result["table_counts"].items():
                logging.info(f"  - {table} (QuestDB): {count:,}")
        path = self.config.summary_file
        if path:
            try:
                with open(path, "w", encoding="utf-8") as f:
                    json.dump(result, f, indent=2, ensure_ascii=False)
            except OSError as e:
                raise SinkError("summary", f"no se pudo escribir {path}: {e}") from e
            logging.info(f"📝 Resumen guardado en {path}")
        return result

    def run(self) -> dict:
        cfg = self.config
        started = self.clock()

        if cfg.create_tables:
            with QuestDBAdmin(cfg.questdb.pg_params) as admin:
                admin.create_tables()

        sites = self.build_topology()
        self.counters["sites"] = len(sites)
        for key, attr in (
            ("channels", "channels"),
            ("fleets", "fleets"),
            ("talk_groups", "talk_groups"),
            ("units", "units"),
        ):
            self.counters[key] = sum(len(getattr(s, attr)) for s in sites)

        if not cfg.in_static_file:
            static_ts = started if cfg.live else cfg.start
            self.counters["static_rows"] = self.save_static_records(sites, static_ts)

        if cfg.out_static_file:
            snapshot.save(sites, cfg.out_static_file)

        logging.info("Generando métricas de llamadas")
        self.generate_calls(sites)

        result = self.summary()
        logging.info(f"Finalizado en {(self.clock() - started).total_seconds():.2f} segundos")
        return result

"""
Generador de carga de llamadas para una red de radio troncalizada (QuestDB).

Ejecutar (desde la raíz):
    callgen --sites 5 --start 2022-01-01T00:00:00Z --end 2022-01-02T00:00:00Z
    callgen --live --interval 10s --in-static-file static.json
"""

import argparse
import logging
import os
import signal
import sys
import threading
from datetime import datetime
from typing import Optional, Sequence

from .config import GeneratorConfig, parse_duration, parse_hour_band, parse_timestamp
from .errors import ConfigError, GeneratorError
from .pipeline import CallGenerator


# --------------------------------------------------------------------------------------
# Logging
# --------------------------------------------------------------------------------------
def setup_logging(log_dir: str = "logs") -> str:
    os.makedirs(log_dir, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M")
    log_path = os.path.join(log_dir, f"callgen_{stamp}.log")
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
        handlers=[logging.FileHandler(log_path, encoding="utf-8"), logging.StreamHandler()],
    )
    return log_path


# --------------------------------------------------------------------------------------
# Argumentos
# --------------------------------------------------------------------------------------
def _arg(parse):
    def wrapper(value):
        try:
            return parse(value)
        except ConfigError as e:
            raise argparse.ArgumentTypeError(str(e))

    wrapper.__name__ = parse.__name__
    return wrapper


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="callgen", description="Genera topología y métricas de llamadas en QuestDB")
    p.add_argument("--start", type=_arg(parse_timestamp), help="Inicio del backfill (RFC3339)")
    p.add_argument("--end", type=_arg(parse_timestamp), help="Fin del backfill, excluido (RFC3339)")
    p.add_argument("--interval", type=_arg(parse_duration), help="Paso entre intervalos (ej: 10s, 1m)")
    p.add_argument("--sites", type=int, default=1)
    p.add_argument("--channels-per-site", type=int, default=10)
    p.add_argument("--fleets-per-site", type=int, default=5)
    p.add_argument("--talk-groups-per-site", type=int, default=20)
    p.add_argument("--units-per-talk-group", type=int, default=5)
    p.add_argument(
        "--flush-batch-size",
        type=int,
        help="Filas por lote antes de vaciar a QuestDB. Puede requerir subir --flush-batch-buffer-mb",
    )
    p.add_argument("--flush-batch-buffer-mb", type=int, help="MB del buffer ILP")
    p.add_argument("--min-load", type=float, default=0.0, help="Fracción mínima de unidades que llaman por intervalo")
    p.add_argument("--max-load", type=float, default=1.0, help="Fracción máxima de unidades que llaman por intervalo")
    p.add_argument("--load", type=float, help="Carga fija (±10%%); reemplaza --min-load/--max-load")
    p.add_argument("--live", action="store_true", help="Genera en tiempo real hasta Ctrl+C")
    p.add_argument("--degraded-sites", action="store_true", help="~10%% de sitios con capacidad reducida")
    p.add_argument("--low-load-sites", action="store_true", help="~30%% de sitios descartan llamadas por intervalo")
    p.add_argument("--quiet-hours", type=_arg(parse_hour_band), help="Franja UTC de bajo tráfico (ej: 0-6)")
    p.add_argument("--quiet-factor", type=float, default=0.3, help="Multiplicador de carga en la franja [0, 0.5]")
    p.add_argument("--max-call-length", type=_arg(parse_duration), help="Duración máxima de llamada (15m / 5m live)")
    p.add_argument("--out-metrics-file", help="Escribe ILP a este archivo en vez de enviarlo a QuestDB")
    p.add_argument("--out-static-file", help="Guarda la topología en JSON")
    p.add_argument("--in-static-file", help="Carga la topología desde JSON (no se regenera ni se reingesta)")
    p.add_argument("--summary-file", help="Escribe el resumen de la corrida en JSON")
    p.add_argument("--seed", type=int, help="Semilla para reproducibilidad")
    p.add_argument("--create-tables", action="store_true", help="CREATE TABLE IF NOT EXISTS vía PG-wire")
    p.add_argument("--verify", action="store_true", help="Lee conteos de tablas vía PG-wire al final")
    p.add_argument("--log-dir", default="logs")
    return p


def config_from_args(args: argparse.Namespace) -> GeneratorConfig:
    return GeneratorConfig.from_env(
        start=args.start,
        end=args.end,
        interval=args.interval,
        sites=args.sites,
        channels_per_site=args.channels_per_site,
        fleets_per_site=args.fleets_per_site,
        talk_groups_per_site=args.talk_groups_per_site,
        units_per_talk_group=args.units_per_talk_group,
        flush_batch_size=args.flush_batch_size,
        flush_batch_buffer_mb=args.flush_batch_buffer_mb,
        min_load=args.min_load,
        max_load=args.max_load,
        load=args.load,
        live=args.live,
        degraded_sites=args.degraded_sites,
        low_load_sites=args.low_load_sites,
        quiet_hours=args.quiet_hours,
        quiet_factor=args.quiet_factor,
        max_call_length=args.max_call_length,
        out_metrics_file=args.out_metrics_file,
        out_static_file=args.out_static_file,
        in_static_file=args.in_static_file,
        summary_file=args.summary_file,
        seed=args.seed,
        create_tables=args.create_tables,
        verify=args.verify,
    )


# --------------------------------------------------------------------------------------
# main
# --------------------------------------------------------------------------------------
def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_dir)
    logging.info("CALLGEN – generador de carga de llamadas")

    try:
        gen = CallGenerator(config_from_args(args), stop_event=threading.Event())
    except ConfigError as e:
        logging.error(f"❌ Configuración inválida: {e}")
        return 2

    # Cancelación cooperativa: sólo se marca el evento, el worker drena y termina
    def _request_stop(signum, frame):
        logging.info(f"Señal {signal.Signals(signum).name} recibida, deteniendo…")
        gen.stop_event.set()

    # En backfill Ctrl+C aborta (KeyboardInterrupt); en live drena y termina
    previous = {}
    if gen.config.live:
        previous = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
        for sig in previous:
            signal.signal(sig, _request_stop)

    try:
        gen.run()
    except ConfigError as e:
        logging.error(f"❌ Configuración inválida: {e}")
        return 2
    except GeneratorError:
        logging.exception("❌ Fallo durante la generación.")
        return 1
    except KeyboardInterrupt:
        logging.warning("⚠ Backfill interrumpido; lo ya vaciado permanece en QuestDB.")
        return 130
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Configuración del generador.

Los valores por defecto de conexión y de lotes se leen desde .env (raíz del
repo) o desde el entorno; la CLI los sobreescribe. ``validate()`` se llama
antes de generar cualquier registro: los errores de configuración son
fatales y tempranos.
"""

import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigError

BACKFILL_MAX_CALL_LENGTH = timedelta(minutes=15)
LIVE_MAX_CALL_LENGTH = timedelta(minutes=5)

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|us|h|m|s)")
_DURATION_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
    "us": timedelta(microseconds=1),
}


# --------------------------------------------------------------------------------------
# Parsers
# --------------------------------------------------------------------------------------
def parse_timestamp(value: str) -> datetime:
    """RFC3339 (``2022-01-01T00:00:00Z``) -> datetime en UTC."""
    ts = (value or "").strip()
    if ts.endswith("Z"):
        ts = ts[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(ts)
    except ValueError as e:
        raise ConfigError(f"timestamp inválido {value!r}: {e}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_duration(value: str) -> timedelta:
    """Duraciones estilo ``10s``, ``1m30s``, ``250ms``, ``1h``."""
    text = (value or "").strip()
    pos = 0
    total = timedelta(0)
    for m in _DURATION_RE.finditer(text):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if not text or pos != len(text):
        raise ConfigError(f"duración inválida {value!r} (ej: 10s, 5m, 1h, 250ms)")
    return total


def parse_hour_band(value: str) -> Tuple[int, int]:
    """``"0-6"`` -> (0, 6). Si inicio > fin la franja cruza medianoche."""
    try:
        start, end = (int(x) for x in value.split("-", 1))
    except ValueError as e:
        raise ConfigError(f"franja horaria inválida {value!r} (ej: 0-6, 22-5)") from e
    return start, end


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} debe ser entero, se recibió {raw!r}") from e


# --------------------------------------------------------------------------------------
# Config
# --------------------------------------------------------------------------------------
@dataclass
class QuestDBConfig:
    host: str = "localhost"
    ilp_port: int = 9000
    ilp_protocol: str = "http"
    pg_port: int = 8812
    user: str = "admin"
    password: str = "quest"
    database: str = "qdb"

    @classmethod
    def from_env(cls) -> "QuestDBConfig":
        load_dotenv()
        return cls(
            host=os.getenv("QDB_HOST", "localhost"),
            ilp_port=_env_int("QDB_ILP_PORT", 9000),
            ilp_protocol=os.getenv("QDB_ILP_PROTOCOL", "http"),
            pg_port=_env_int("QDB_PG_PORT", 8812),
            user=os.getenv("QDB_USER", "admin"),
            password=os.getenv("QDB_PASSWORD", "quest"),
            database=os.getenv("QDB_DATABASE", "qdb"),
        )

    @property
    def pg_params(self) -> dict:
        return {
            "host": self.host,
            "port": self.pg_port,
            "user": self.user,
            "password": self.password,
            "dbname": self.database,
        }


@dataclass
class GeneratorConfig:
    start: datetime = field(default_factory=lambda: parse_timestamp("2022-01-01T00:00:00Z"))
    end: datetime = field(default_factory=lambda: parse_timestamp("2022-01-01T01:00:01Z"))
    interval: timedelta = timedelta(seconds=10)

    sites: int = 1
    channels_per_site: int = 10
    fleets_per_site: int = 5
    talk_groups_per_site: int = 20
    units_per_talk_group: int = 5

    flush_batch_size: int = 10000
    flush_batch_buffer_mb: int = 100

    min_load: float = 0.0
    max_load: float = 1.0
    load: Optional[float] = None

    live: bool = False
    degraded_sites: bool = False
    degraded_site_probability: float = 0.1
    low_load_sites: bool = False
    low_load_site_probability: float = 0.3
    quiet_hours: Optional[Tuple[int, int]] = None
    quiet_factor: float = 0.3
    max_call_length: Optional[timedelta] = None

    out_metrics_file: Optional[str] = None
    out_static_file: Optional[str] = None
    in_static_file: Optional[str] = None
    summary_file: Optional[str] = None

    seed: Optional[int] = None
    create_tables: bool = False
    verify: bool = False
    questdb: QuestDBConfig = field(default_factory=QuestDBConfig)

    @classmethod
    def from_env(cls, **overrides) -> "GeneratorConfig":
        """Config base desde .env / entorno, con ``overrides`` encima."""
        load_dotenv()
        base = {
            "flush_batch_size": _env_int("CALLGEN_FLUSH_BATCH_SIZE", 10000),
            "flush_batch_buffer_mb": _env_int("CALLGEN_FLUSH_BATCH_BUFFER_MB", 100),
            "questdb": QuestDBConfig.from_env(),
        }
        if os.getenv("CALLGEN_START"):
            base["start"] = parse_timestamp(os.environ["CALLGEN_START"])
        if os.getenv("CALLGEN_END"):
            base["end"] = parse_timestamp(os.environ["CALLGEN_END"])
        if os.getenv("CALLGEN_INTERVAL"):
            base["interval"] = parse_duration(os.environ["CALLGEN_INTERVAL"])
        if os.getenv("CALLGEN_SEED"):
            base["seed"] = _env_int("CALLGEN_SEED", 0)
        base.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**base)

    @property
    def call_length(self) -> timedelta:
        if self.max_call_length is not None:
            return self.max_call_length
        return LIVE_MAX_CALL_LENGTH if self.live else BACKFILL_MAX_CALL_LENGTH

    @property
    def buffer_capacity(self) -> int:
        return self.flush_batch_buffer_mb * 1024 * 1024

    def validate(self) -> "GeneratorConfig":
        if self.interval <= timedelta(0):
            raise ConfigError(f"interval debe ser positivo, se recibió {self.interval}")
        if not self.live and self.end <= self.start:
            raise ConfigError(
                f"rango de tiempo inválido: end ({self.end.isoformat()}) "
                f"debe ser posterior a start ({self.start.isoformat()})"
            )

        counts = {
            "sites": self.sites,
            "channels_per_site": self.channels_per_site,
            "fleets_per_site": self.fleets_per_site,
            "talk_groups_per_site": self.talk_groups_per_site,
            "units_per_talk_group": self.units_per_talk_group,
        }
        for name, value in counts.items():
            if value < 0:
                raise ConfigError(f"{name} no puede ser negativo ({value})")
        if self.fleets_per_site == 0 and self.talk_groups_per_site > 0:
            raise ConfigError("fleets_per_site=0: los talk groups no tienen flota a la cual asignarse")

        if self.flush_batch_size < 1:
            raise ConfigError("flush_batch_size debe ser >= 1")
        if self.flush_batch_buffer_mb < 1:
            raise ConfigError("flush_batch_buffer_mb debe ser >= 1")

        for name in ("min_load", "max_load"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} debe estar en [0, 1], se recibió {value}")
        if self.min_load > self.max_load:
            raise ConfigError(f"min_load ({self.min_load}) > max_load ({self.max_load})")
        if self.load is not None and not 0.0 <= self.load <= 1.0:
            raise ConfigError(f"load debe estar en [0, 1], se recibió {self.load}")

        for name in ("degraded_site_probability", "low_load_site_probability"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} debe estar en [0, 1], se recibió {value}")
        if not 0.0 <= self.quiet_factor <= 0.5:
            raise ConfigError(f"quiet_factor debe estar en [0, 0.5], se recibió {self.quiet_factor}")
        if self.quiet_hours is not None:
            if any(not 0 <= h <= 23 for h in self.quiet_hours):
                raise ConfigError(f"quiet_hours fuera de 0-23: {self.quiet_hours}")
        if self.max_call_length is not None and self.max_call_length < timedelta(0):
            raise ConfigError("max_call_length no puede ser negativo")

        if self.in_static_file and not os.path.isfile(self.in_static_file):
            raise ConfigError(f"in_static_file no existe: {self.in_static_file}")
        return self

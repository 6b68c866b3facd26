"""
Modelo de carga: cuántas llamadas ocurren en un sitio en un intervalo.

- Factor de carga uniforme en [min_load, max_load], o load ±10% acotado a [0, 1]
- Franja horaria de bajo tráfico (opcional): el factor se multiplica por quiet_factor
- Sitios de baja carga (opcional): con probabilidad fija, cada llamada
  candidata del intervalo se descarta con una probabilidad en [0, 0.5]
- Unidad origen, talk group destino y canal se eligen al azar dentro del
  sitio; no se exige que la unidad pertenezca al talk group destino
"""

import math
import random
from datetime import datetime, timedelta
from typing import List, Optional

from faker import Faker

from .config import GeneratorConfig
from .models import Call, Site

LOAD_JITTER = 0.10
MAX_LOW_LOAD_DROP = 0.5


class LoadModel:
    def __init__(self, config: GeneratorConfig, rng: Optional[random.Random] = None):
        self.config = config
        self.rng = rng or random.Random(config.seed)
        self.fake = Faker()
        self.fake.seed_instance(self.rng.getrandbits(32))
        self.max_call_seconds = config.call_length.total_seconds()

    def load_factor(self, at: datetime) -> float:
        cfg = self.config
        if cfg.load is not None:
            lo, hi = cfg.load * (1 - LOAD_JITTER), cfg.load * (1 + LOAD_JITTER)
        else:
            lo, hi = cfg.min_load, cfg.max_load
        factor = min(max(self.rng.uniform(lo, hi), 0.0), 1.0)
        if self.in_quiet_hours(at):
            factor *= cfg.quiet_factor
        return factor

    def in_quiet_hours(self, at: datetime) -> bool:
        if self.config.quiet_hours is None:
            return False
        start, end = self.config.quiet_hours
        hour = at.hour
        if start <= end:
            return start <= hour < end
        return hour >= start or hour < end

    def _low_load_drop(self) -> float:
        cfg = self.config
        if not cfg.low_load_sites or self.rng.random() >= cfg.low_load_site_probability:
            return 0.0
        return self.rng.uniform(0, MAX_LOW_LOAD_DROP)

    def _call_id(self) -> str:
        return self.fake.uuid4()

    def calls_for(self, site: Site, at: datetime) -> List[Call]:
        """Llamadas del sitio para el intervalo que comienza en ``at``."""
        if not (site.units and site.talk_groups and site.channels):
            return []

        factor = self.load_factor(at)
        expected = math.floor(factor * len(site.units))
        if expected <= 0:
            return []

        drop = self._low_load_drop()
        calls = []
        for _ in range(expected):
            if drop and self.rng.random() < drop:
                continue
            unit = self.rng.choice(site.units)
            talk_group = self.rng.choice(site.talk_groups)
            channel = self.rng.choice(site.channels)
            ended_at = at + timedelta(seconds=self.rng.uniform(0, self.max_call_seconds))
            calls.append(
                Call(
                    id=self._call_id(),
                    site_id=site.id,
                    channel_id=channel.id,
                    fleet_id=talk_group.fleet_id,
                    source_unit_id=unit.id,
                    destination_talk_group_id=talk_group.id,
                    started_at=at,
                    ended_at=ended_at,
                )
            )
        return calls

"""
Generador de la topología estática: sites, channels, fleets, talk groups, units.

Características:
- Nombres con Faker, desambiguados por NameAllocator
- IDs UUID4 reproducibles con semilla
- Talk groups asignados a una flota aleatoria del mismo sitio
- Modo "sitio degradado" (opcional): se descartan al azar hasta 10% de
  flotas, 10% de canales, 15% de talk groups y 20% de unidades por talk
  group. Las bajas ocurren antes de generar los dependientes, así que nunca
  quedan referencias colgando.
"""

import logging
import random
from dataclasses import dataclass
from typing import List, Optional

from faker import Faker

from .config import GeneratorConfig
from .errors import ConfigError
from .models import Channel, Fleet, Site, TalkGroup, Unit
from .names import NameAllocator

# Banda TETRA / UHF, duplex de 10 MHz
FREQ_MIN_MHZ = 380.0
FREQ_MAX_MHZ = 470.0
DUPLEX_OFFSET_MHZ = 10.0

# Tope de tasa de bajas por tipo de entidad en un sitio degradado
MAX_FLEET_DROP = 0.10
MAX_CHANNEL_DROP = 0.10
MAX_TALK_GROUP_DROP = 0.15
MAX_UNIT_DROP = 0.20


@dataclass(frozen=True)
class DropRates:
    fleets: float = 0.0
    channels: float = 0.0
    talk_groups: float = 0.0
    units: float = 0.0


NO_DROPS = DropRates()


class TopologyGenerator:
    def __init__(
        self,
        config: GeneratorConfig,
        allocator: Optional[NameAllocator] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.rng = rng or random.Random(config.seed)
        self.fake = Faker()
        self.fake.seed_instance(self.rng.getrandbits(32))
        self.names = allocator or NameAllocator(self.rng)
        self.degraded = 0

    # ---------------- Helpers ----------------
    def _uuid(self) -> str:
        return self.fake.uuid4()

    def _keep(self, drop_rate: float) -> bool:
        return drop_rate <= 0 or self.rng.random() >= drop_rate

    def _drop_rates(self) -> DropRates:
        if not self.config.degraded_sites:
            return NO_DROPS
        if self.rng.random() >= self.config.degraded_site_probability:
            return NO_DROPS
        return DropRates(
            fleets=self.rng.uniform(0, MAX_FLEET_DROP),
            channels=self.rng.uniform(0, MAX_CHANNEL_DROP),
            talk_groups=self.rng.uniform(0, MAX_TALK_GROUP_DROP),
            units=self.rng.uniform(0, MAX_UNIT_DROP),
        )

    def _frequencies(self):
        tx = round(self.rng.uniform(FREQ_MIN_MHZ + DUPLEX_OFFSET_MHZ, FREQ_MAX_MHZ), 4)
        return tx, round(tx - DUPLEX_OFFSET_MHZ, 4)

    # ---------------- Generadores ----------------
    def generate_site(self) -> Site:
        cfg = self.config
        site_id = self._uuid()
        drops = self._drop_rates()

        fleets = []
        for _ in range(cfg.fleets_per_site):
            if not self._keep(drops.fleets):
                continue
            fleets.append(
                Fleet(
                    id=self._uuid(),
                    site_id=site_id,
                    name=self.names.allocate(self.fake.country_code(), prefix="Fleet#"),
                )
            )

        channels = []
        for j in range(cfg.channels_per_site):
            if not self._keep(drops.channels):
                continue
            tx, rx = self._frequencies()
            channels.append(
                Channel(
                    id=self._uuid(),
                    site_id=site_id,
                    name=self.names.allocate(f"{j:02d}", prefix="Channel#"),
                    tx_frequency=tx,
                    rx_frequency=rx,
                )
            )

        talk_groups = []
        units = []
        if not fleets and cfg.talk_groups_per_site > 0:
            # Sólo alcanzable en sitios degradados: validate() ya rechaza fleets_per_site=0
            logging.warning(f"⚠ Sitio {site_id} sin flotas tras degradación; se omiten talk groups y unidades")
        else:
            for _ in range(cfg.talk_groups_per_site):
                if not self._keep(drops.talk_groups):
                    continue
                talk_group = TalkGroup(
                    id=self._uuid(),
                    site_id=site_id,
                    fleet_id=self.rng.choice(fleets).id,
                    name=self.names.allocate(self.fake.word(), prefix="TalkGroup#"),
                )
                talk_groups.append(talk_group)

                for _ in range(cfg.units_per_talk_group):
                    if not self._keep(drops.units):
                        continue
                    units.append(
                        Unit(
                            id=self._uuid(),
                            site_id=site_id,
                            talk_group_id=talk_group.id,
                            name=self.names.allocate(self.fake.word(), prefix="Unit#"),
                        )
                    )

        if drops is not NO_DROPS:
            self.degraded += 1
            logging.info(
                f"   ~ Sitio degradado: fleets={len(fleets)}/{cfg.fleets_per_site} "
                f"channels={len(channels)}/{cfg.channels_per_site} "
                f"talk_groups={len(talk_groups)}/{cfg.talk_groups_per_site} "
                f"units={len(units)}/{cfg.talk_groups_per_site * cfg.units_per_talk_group}"
            )

        return Site(
            id=site_id,
            name=self.names.allocate(self.fake.city(), prefix="Site#"),
            channels=tuple(channels),
            fleets=tuple(fleets),
            talk_groups=tuple(talk_groups),
            units=tuple(units),
        )

    def generate(self) -> List[Site]:
        cfg = self.config
        if cfg.fleets_per_site == 0 and cfg.talk_groups_per_site > 0:
            raise ConfigError("fleets_per_site=0: los talk groups no tienen flota a la cual asignarse")

        logging.info(
            f"Generando {cfg.sites} sitios "
            f"({cfg.channels_per_site} canales, {cfg.fleets_per_site} flotas, "
            f"{cfg.talk_groups_per_site} talk groups, {cfg.units_per_talk_group} unidades/talk group)…"
        )
        sites = [self.generate_site() for _ in range(cfg.sites)]
        logging.info(f"✔ {len(sites)} sitios generados ({self.degraded} degradados).")
        return sites

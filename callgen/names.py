"""
Asignador de nombres legibles y únicos.

Faker repite palabras con frecuencia ("Lorem", "Ipsum", la misma ciudad...),
así que cada nombre se desambigua con un sufijo numérico incremental.
El estado vive en la instancia y sólo crece; se descarta con el proceso.
"""

import random
from typing import Dict, Optional, Set

from faker import Faker


class NameAllocator:
    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self._counters: Dict[str, int] = {}
        self._issued: Set[str] = set()
        self._fake: Optional[Faker] = None

    @staticmethod
    def normalize(raw: str) -> str:
        name = (raw or "").strip().replace(" ", "_")
        return name[:1].upper() + name[1:]

    def _degenerate(self, name: str) -> str:
        if not name:
            if self._fake is None:
                self._fake = Faker()
                self._fake.seed_instance(self._rng.getrandbits(32))
            return self._fake.uuid4()
        return f"{name}{self._rng.randint(100, 999)}"

    def allocate(self, raw: str, prefix: str = "") -> str:
        """Devuelve ``prefix + nombre`` garantizando que no se emitió antes."""
        name = self.normalize(raw)
        if len(name) <= 1:
            name = self._degenerate(name)

        base = f"{prefix}{name}"
        if base not in self._counters and base not in self._issued:
            self._counters[base] = 2
            self._issued.add(base)
            return base

        # Colisión: sufijo _2, _3, ... saltando lo ya emitido
        n = self._counters.get(base, 2)
        candidate = f"{base}_{n}"
        while candidate in self._issued:
            n += 1
            candidate = f"{base}_{n}"
        self._counters[base] = n + 1
        self._issued.add(candidate)
        return candidate

    def __len__(self) -> int:
        return len(self._issued)

"""
Entidades de la red troncalizada y filas lógicas para QuestDB.

Jerarquía: Site -> Channel / Fleet / TalkGroup / Unit.
Las entidades son inmutables una vez creadas; Call es un evento transitorio
que vive sólo hasta que el lote que lo contiene se vacía al sink.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Tuple

STATUS_ACTIVE = 1

# Nombres de tabla en QuestDB
SITES = "sites"
CHANNELS = "channels"
FLEETS = "fleets"
TALK_GROUPS = "talk_groups"
UNITS = "units"
CALLS = "calls"


@dataclass(frozen=True)
class Row:
    """Fila lógica: tabla, columnas SYMBOL, columnas tipadas y timestamp designado."""

    table: str
    symbols: Dict[str, str]
    columns: Dict[str, Any]
    at: datetime


# --------------------------------------------------------------------------------------
# Estáticos
# --------------------------------------------------------------------------------------
@dataclass(frozen=True)
class Channel:
    id: str
    site_id: str
    name: str
    tx_frequency: float
    rx_frequency: float
    status: int = STATUS_ACTIVE

    def to_row(self, ts: datetime) -> Row:
        return Row(
            CHANNELS,
            {"id": self.id, "site_id": self.site_id, "name": self.name},
            {
                "tx_freq": float(self.tx_frequency),
                "rx_freq": float(self.rx_frequency),
                "status": int(self.status),
            },
            ts,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "siteId": self.site_id,
            "name": self.name,
            "txFrequency": self.tx_frequency,
            "rxFrequency": self.rx_frequency,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Channel":
        return cls(
            id=d["id"],
            site_id=d["siteId"],
            name=d["name"],
            tx_frequency=d["txFrequency"],
            rx_frequency=d["rxFrequency"],
            status=d.get("status", STATUS_ACTIVE),
        )


@dataclass(frozen=True)
class Fleet:
    id: str
    site_id: str
    name: str
    status: int = STATUS_ACTIVE

    def to_row(self, ts: datetime) -> Row:
        return Row(
            FLEETS,
            {"id": self.id, "site_id": self.site_id, "name": self.name},
            {"status": int(self.status)},
            ts,
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "siteId": self.site_id, "name": self.name, "status": self.status}

    @classmethod
    def from_dict(cls, d: dict) -> "Fleet":
        return cls(d["id"], d["siteId"], d["name"], d.get("status", STATUS_ACTIVE))


@dataclass(frozen=True)
class TalkGroup:
    id: str
    site_id: str
    fleet_id: str
    name: str
    status: int = STATUS_ACTIVE

    def to_row(self, ts: datetime) -> Row:
        return Row(
            TALK_GROUPS,
            {
                "id": self.id,
                "site_id": self.site_id,
                "fleet_id": self.fleet_id,
                "name": self.name,
            },
            {"status": int(self.status)},
            ts,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "siteId": self.site_id,
            "fleetId": self.fleet_id,
            "name": self.name,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "TalkGroup":
        return cls(d["id"], d["siteId"], d["fleetId"], d["name"], d.get("status", STATUS_ACTIVE))


@dataclass(frozen=True)
class Unit:
    id: str
    site_id: str
    talk_group_id: str
    name: str
    status: int = STATUS_ACTIVE

    def to_row(self, ts: datetime) -> Row:
        return Row(
            UNITS,
            {
                "id": self.id,
                "site_id": self.site_id,
                "talk_group_id": self.talk_group_id,
                "name": self.name,
            },
            {"status": int(self.status)},
            ts,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "siteId": self.site_id,
            "talkGroupId": self.talk_group_id,
            "name": self.name,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Unit":
        return cls(d["id"], d["siteId"], d["talkGroupId"], d["name"], d.get("status", STATUS_ACTIVE))


@dataclass(frozen=True)
class Site:
    """Un sitio es dueño único de sus canales, flotas, talk groups y unidades."""

    id: str
    name: str
    status: int = STATUS_ACTIVE
    channels: Tuple[Channel, ...] = field(default_factory=tuple)
    fleets: Tuple[Fleet, ...] = field(default_factory=tuple)
    talk_groups: Tuple[TalkGroup, ...] = field(default_factory=tuple)
    units: Tuple[Unit, ...] = field(default_factory=tuple)

    def to_row(self, ts: datetime) -> Row:
        return Row(SITES, {"id": self.id, "name": self.name}, {"status": int(self.status)}, ts)

    def static_rows(self, ts: datetime) -> List[Row]:
        """Fila del sitio seguida de las de todos sus hijos (mismo orden que la ingesta)."""
        rows = [self.to_row(ts)]
        for children in (self.channels, self.fleets, self.talk_groups, self.units):
            rows.extend(c.to_row(ts) for c in children)
        return rows

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "channels": [c.to_dict() for c in self.channels],
            "fleets": [f.to_dict() for f in self.fleets],
            "talkGroups": [t.to_dict() for t in self.talk_groups],
            "units": [u.to_dict() for u in self.units],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Site":
        return cls(
            id=d["id"],
            name=d["name"],
            status=d.get("status", STATUS_ACTIVE),
            channels=tuple(Channel.from_dict(c) for c in d.get("channels") or []),
            fleets=tuple(Fleet.from_dict(f) for f in d.get("fleets") or []),
            talk_groups=tuple(TalkGroup.from_dict(t) for t in d.get("talkGroups") or []),
            units=tuple(Unit.from_dict(u) for u in d.get("units") or []),
        )


# --------------------------------------------------------------------------------------
# Eventos
# --------------------------------------------------------------------------------------
@dataclass(frozen=True)
class Call:
    id: str
    site_id: str
    channel_id: str
    fleet_id: str
    source_unit_id: str
    destination_talk_group_id: str
    started_at: datetime
    ended_at: datetime

    @property
    def duration_seconds(self) -> int:
        return int((self.ended_at - self.started_at).total_seconds())

    def to_row(self) -> Row:
        return Row(
            CALLS,
            {
                "site_id": self.site_id,
                "channel_id": self.channel_id,
                "fleet_id": self.fleet_id,
                "source_unit_id": self.source_unit_id,
                "destination_talk_group_id": self.destination_talk_group_id,
            },
            {
                "id": self.id,
                "started_at": self.started_at,
                "ended_at": self.ended_at,
                "duration_sec": self.duration_seconds,
            },
            self.started_at,
        )

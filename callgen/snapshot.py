"""Guardar / cargar la topología en JSON para reutilizar los mismos IDs entre corridas."""

import json
import logging
from typing import List

from .errors import SinkError
from .models import Site


def dumps(sites: List[Site]) -> str:
    return json.dumps([s.to_dict() for s in sites], indent=2, ensure_ascii=False)


def loads(text: str) -> List[Site]:
    return [Site.from_dict(d) for d in json.loads(text)]


def save(sites: List[Site], path: str) -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(dumps(sites))
    except OSError as e:
        raise SinkError("topology save", f"no se pudo escribir {path}: {e}") from e
    logging.info(f"📝 Topología guardada en {path}")


def load(path: str) -> List[Site]:
    logging.info(f"Cargando registros estáticos desde JSON: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            sites = loads(f.read())
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise SinkError("topology load", f"no se pudo leer {path}: {e}") from e

    logging.info(f"   + Sites: {len(sites)}")
    logging.info(f"   + Channels: {sum(len(s.channels) for s in sites)}")
    logging.info(f"   + Fleets: {sum(len(s.fleets) for s in sites)}")
    logging.info(f"   + TalkGroups: {sum(len(s.talk_groups) for s in sites)}")
    logging.info(f"   + Units: {sum(len(s.units) for s in sites)}")
    return sites

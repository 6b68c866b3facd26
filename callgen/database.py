"""
Acceso a QuestDB por el protocolo PostgreSQL (puerto 8812) con psycopg2.

La ingesta va por ILP; este módulo sólo crea las tablas (particionadas por
día, SYMBOL indexados) y lee conteos para el resumen final.
"""

import logging
from typing import Dict

import psycopg2

from .errors import SinkError
from .models import CALLS, CHANNELS, FLEETS, SITES, TALK_GROUPS, UNITS

TABLES = [SITES, CHANNELS, FLEETS, TALK_GROUPS, UNITS, CALLS]

DDL = {
    SITES: """
        CREATE TABLE IF NOT EXISTS sites (
            id SYMBOL CAPACITY 256 CACHE INDEX,
            name SYMBOL CAPACITY 256 CACHE INDEX,
            status LONG,
            timestamp TIMESTAMP
        ) timestamp(timestamp) PARTITION BY DAY;
    """,
    CHANNELS: """
        CREATE TABLE IF NOT EXISTS channels (
            id SYMBOL CAPACITY 4096 CACHE INDEX,
            site_id SYMBOL CAPACITY 256 CACHE INDEX,
            name SYMBOL CAPACITY 4096 CACHE INDEX,
            tx_freq DOUBLE,
            rx_freq DOUBLE,
            status LONG,
            timestamp TIMESTAMP
        ) timestamp(timestamp) PARTITION BY DAY;
    """,
    FLEETS: """
        CREATE TABLE IF NOT EXISTS fleets (
            id SYMBOL CAPACITY 4096 CACHE INDEX,
            site_id SYMBOL CAPACITY 256 CACHE INDEX,
            name SYMBOL CAPACITY 4096 CACHE INDEX,
            status LONG,
            timestamp TIMESTAMP
        ) timestamp(timestamp) PARTITION BY DAY;
    """,
    TALK_GROUPS: """
        CREATE TABLE IF NOT EXISTS talk_groups (
            id SYMBOL CAPACITY 16384 CACHE INDEX,
            site_id SYMBOL CAPACITY 256 CACHE INDEX,
            fleet_id SYMBOL CAPACITY 4096 CACHE INDEX,
            name SYMBOL CAPACITY 16384 CACHE INDEX,
            status LONG,
            timestamp TIMESTAMP
        ) timestamp(timestamp) PARTITION BY DAY;
    """,
    UNITS: """
        CREATE TABLE IF NOT EXISTS units (
            id SYMBOL CAPACITY 65536 CACHE INDEX,
            site_id SYMBOL CAPACITY 256 CACHE INDEX,
            talk_group_id SYMBOL CAPACITY 16384 CACHE INDEX,
            name SYMBOL CAPACITY 65536 CACHE INDEX,
            status LONG,
            timestamp TIMESTAMP
        ) timestamp(timestamp) PARTITION BY DAY;
    """,
    CALLS: """
        CREATE TABLE IF NOT EXISTS calls (
            id STRING,
            site_id SYMBOL CAPACITY 256 CACHE INDEX,
            channel_id SYMBOL CAPACITY 4096 CACHE INDEX,
            fleet_id SYMBOL CAPACITY 4096 CACHE INDEX,
            source_unit_id SYMBOL CAPACITY 65536 CACHE INDEX,
            destination_talk_group_id SYMBOL CAPACITY 16384 CACHE INDEX,
            started_at TIMESTAMP,
            ended_at TIMESTAMP,
            duration_sec LONG,
            timestamp TIMESTAMP
        ) timestamp(timestamp) PARTITION BY DAY;
    """,
}


class QuestDBAdmin:
    def __init__(self, pg_params: dict):
        self.pg_params = pg_params
        self.conn = None

    def connect(self):
        try:
            self.conn = psycopg2.connect(**self.pg_params)
            self.conn.autocommit = True
            logging.info("✅ Conexión PG-wire a QuestDB establecida.")
        except psycopg2.Error as e:
            raise SinkError("questdb connect", str(e)) from e

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self) -> "QuestDBAdmin":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def create_tables(self) -> None:
        logging.info("🧱 CREATE TABLE IF NOT EXISTS de todas las tablas…")
        with self.conn.cursor() as cur:
            for table in TABLES:
                try:
                    cur.execute(DDL[table])
                except psycopg2.Error as e:
                    raise SinkError("create tables", str(e), table) from e
        logging.info("✔ Tablas listas.")

    def table_counts(self) -> Dict[str, int]:
        counts = {}
        with self.conn.cursor() as cur:
            for table in TABLES:
                try:
                    cur.execute(f"SELECT count() FROM {table}")
                    counts[table] = int(cur.fetchone()[0])
                except psycopg2.Error as e:
                    raise SinkError("verify", str(e), table) from e
        return counts

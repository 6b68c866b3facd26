from datetime import timedelta

import pytest

from callgen.config import GeneratorConfig, parse_timestamp


class RecordingWriter:
    """Escritor en memoria: guarda filas confirmadas y las entrega al sink en flush()."""

    def __init__(self, sink):
        self.sink = sink
        self.pending = []
        self.closed = False
        self._row = None

    def begin_row(self, table):
        self._row = {"table": table, "symbols": {}, "columns": {}}
        return self

    def symbol(self, column, value):
        self._row["symbols"][column] = value
        return self

    def string(self, column, value):
        self._row["columns"][column] = ("string", value)
        return self

    def int_column(self, column, value):
        self._row["columns"][column] = ("int", value)
        return self

    def float_column(self, column, value):
        self._row["columns"][column] = ("float", value)
        return self

    def timestamp_column(self, column, value):
        self._row["columns"][column] = ("timestamp", value)
        return self

    def commit_row(self, at):
        self._row["at"] = at
        self.pending.append(self._row)
        self._row = None

    def flush(self):
        if self.sink.fail_on_flush:
            raise IOError("conexión rechazada")
        self.sink.batches.append(list(self.pending))
        self.pending = []

    def pending_messages(self):
        lines = []
        for r in self.pending:
            key = r["symbols"].get("id") or r["columns"].get("id", (None, ""))[1]
            lines.append(f"{r['table']} {key}\n")
        return "".join(lines).encode("utf-8")

    def close(self):
        self.pending = []
        self.closed = True


class RecordingSink:
    def __init__(self):
        self.writers = []
        self.batches = []
        self.fail_on_flush = False

    def new_writer(self):
        w = RecordingWriter(self)
        self.writers.append(w)
        return w

    @property
    def rows(self):
        return [r for batch in self.batches for r in batch]

    def rows_for(self, table):
        return [r for r in self.rows if r["table"] == table]


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def config():
    return GeneratorConfig(
        start=parse_timestamp("2022-01-01T00:00:00Z"),
        end=parse_timestamp("2022-01-01T00:00:31Z"),
        interval=timedelta(seconds=10),
        sites=2,
        channels_per_site=3,
        fleets_per_site=2,
        talk_groups_per_site=4,
        units_per_talk_group=3,
        flush_batch_size=25,
        seed=1234,
    )

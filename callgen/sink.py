"""
Escritor de filas ILP (InfluxDB Line Protocol) sobre el cliente oficial de QuestDB.

El resto del generador sólo conoce la interfaz ``RowWriter``; la
codificación de cada fila queda en manos de ``questdb.ingress``.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional, Protocol

from questdb.ingress import Buffer, Sender

from .config import GeneratorConfig, QuestDBConfig
from .models import Row


class RowWriter(Protocol):
    def begin_row(self, table: str) -> "RowWriter": ...

    def symbol(self, column: str, value: str) -> "RowWriter": ...

    def string(self, column: str, value: str) -> "RowWriter": ...

    def int_column(self, column: str, value: int) -> "RowWriter": ...

    def float_column(self, column: str, value: float) -> "RowWriter": ...

    def timestamp_column(self, column: str, value: datetime) -> "RowWriter": ...

    def commit_row(self, at: datetime) -> None: ...

    def flush(self) -> None: ...

    def pending_messages(self) -> bytes: ...

    def close(self) -> None: ...


def write_row(writer: RowWriter, row: Row) -> None:
    """Vuelca una fila lógica al escritor, columna por columna según su tipo."""
    writer.begin_row(row.table)
    for col, value in row.symbols.items():
        writer.symbol(col, value)
    for col, value in row.columns.items():
        if isinstance(value, datetime):
            writer.timestamp_column(col, value)
        elif isinstance(value, bool):
            writer.int_column(col, int(value))
        elif isinstance(value, int):
            writer.int_column(col, value)
        elif isinstance(value, float):
            writer.float_column(col, value)
        else:
            writer.string(col, str(value))
    writer.commit_row(row.at)


def ilp_conf(qdb: QuestDBConfig, buffer_capacity: int) -> str:
    # auto_flush=off: los vaciados los decide BatchAccumulator
    conf = f"{qdb.ilp_protocol}::addr={qdb.host}:{qdb.ilp_port};"
    if qdb.ilp_protocol.startswith("http"):
        conf += f"username={qdb.user};password={qdb.password};"
    return conf + f"auto_flush=off;init_buf_size={buffer_capacity};max_buf_size={buffer_capacity};"


class IlpRowWriter:
    """
    ``conf`` None => sin conexión: las filas sólo se acumulan en el buffer
    para luego volcarse a archivo con ``pending_messages()``.
    """

    def __init__(self, conf: Optional[str], buffer_capacity: int):
        self._sender = None
        self._capacity = buffer_capacity
        if conf:
            sender = Sender.from_conf(conf)
            try:
                sender.establish()
            except Exception:
                sender.close(flush=False)
                raise
            self._sender = sender
            self._buffer = sender.new_buffer()
        else:
            # Protocolo 1 = texto plano, el formato que espera tsbs_load_questdb
            self._buffer = Buffer(protocol_version=1, init_buf_size=buffer_capacity)
        self._table: Optional[str] = None
        self._symbols: Dict[str, str] = {}
        self._columns: Dict[str, Any] = {}

    def begin_row(self, table: str) -> "IlpRowWriter":
        self._table = table
        self._symbols = {}
        self._columns = {}
        return self

    def symbol(self, column: str, value: str) -> "IlpRowWriter":
        self._symbols[column] = value
        return self

    def string(self, column: str, value: str) -> "IlpRowWriter":
        self._columns[column] = str(value)
        return self

    def int_column(self, column: str, value: int) -> "IlpRowWriter":
        self._columns[column] = int(value)
        return self

    def float_column(self, column: str, value: float) -> "IlpRowWriter":
        self._columns[column] = float(value)
        return self

    def timestamp_column(self, column: str, value: datetime) -> "IlpRowWriter":
        self._columns[column] = value
        return self

    def commit_row(self, at: datetime) -> None:
        if self._table is None:
            raise RuntimeError("commit_row() sin begin_row()")
        self._buffer.row(self._table, symbols=self._symbols, columns=self._columns, at=at)
        self._table = None
        # Sin conexión no aplica max_buf_size: se acota aquí
        if self._sender is None and len(self._buffer) > self._capacity:
            raise BufferError(f"buffer ILP excede la capacidad ({len(self._buffer):,} > {self._capacity:,} bytes)")

    def flush(self) -> None:
        if self._sender is None:
            raise RuntimeError("escritor sin conexión: usar pending_messages() y volcar a archivo")
        self._sender.flush(self._buffer)

    def pending_messages(self) -> bytes:
        return bytes(self._buffer)

    def close(self) -> None:
        # Descarta lo no vaciado
        self._buffer.clear()
        if self._sender is not None:
            self._sender.close(flush=False)
            self._sender = None


def writer_factory(config: GeneratorConfig) -> Callable[[], RowWriter]:
    capacity = config.buffer_capacity
    if config.out_metrics_file:
        return lambda: IlpRowWriter(None, capacity)
    conf = ilp_conf(config.questdb, capacity)
    return lambda: IlpRowWriter(conf, capacity)

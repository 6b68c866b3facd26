"""
Acumulador de filas con vaciado por umbral.

- ``append()`` nunca bloquea ni escribe
- ``maybe_flush()`` vacía sólo si el buffer supera ``threshold`` (estrictamente)
- ``flush()`` vacía todo en orden de inserción; el llamador debe hacer un
  vaciado final al terminar su ciclo para no perder filas
- Si hay ``output_file``, el ILP acumulado se agrega al archivo y el
  escritor se cierra y se recrea, para que nada se emita dos veces
- Cualquier error de escritura es fatal (SinkError); no hay reintentos
"""

import logging
from typing import Callable, List, Optional

from .errors import SinkError
from .models import Row
from .sink import RowWriter, write_row


class BatchAccumulator:
    def __init__(
        self,
        new_writer: Callable[[], RowWriter],
        threshold: int,
        stage: str = "call-metric flush",
        output_file: Optional[str] = None,
    ):
        self._new_writer = new_writer
        self.threshold = threshold
        self.stage = stage
        self.output_file = output_file
        self.rows: List[Row] = []
        self.flushes = 0
        self.total_rows = 0
        self._writer: Optional[RowWriter] = None
        self._writer = self._open_writer()

    def __enter__(self) -> "BatchAccumulator":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __len__(self) -> int:
        return len(self.rows)

    def _open_writer(self) -> RowWriter:
        try:
            return self._new_writer()
        except Exception as e:
            raise SinkError(self.stage, f"no se pudo inicializar el escritor ILP: {e}") from e

    def _tables(self) -> str:
        return ",".join(sorted({r.table for r in self.rows}))

    # ---------------- API ----------------
    def append(self, row: Row) -> None:
        self.rows.append(row)

    def extend(self, rows) -> None:
        self.rows.extend(rows)

    def maybe_flush(self) -> bool:
        if len(self.rows) <= self.threshold:
            return False
        self.flush()
        return True

    def flush(self) -> int:
        n = len(self.rows)
        if n == 0:
            return 0
        if self._writer is None:
            raise SinkError(self.stage, "acumulador cerrado", self._tables(), n)

        tables = self._tables()
        logging.info(f" > Vaciando {n:,} filas ({tables})")
        try:
            for row in self.rows:
                write_row(self._writer, row)
            if self.output_file:
                self._flush_to_file()
            else:
                self._writer.flush()
        except SinkError:
            raise
        except Exception as e:
            raise SinkError(self.stage, str(e), tables, n) from e

        self.rows = []
        self.flushes += 1
        self.total_rows += n
        logging.info(f"   + {n:,} filas guardadas, total={self.total_rows:,}")
        return n

    def _flush_to_file(self) -> None:
        # Archivo apto para `tsbs_load_questdb --file <archivo>`
        with open(self.output_file, "ab") as f:
            f.write(self._writer.pending_messages())
        self._writer.close()
        self._writer = None
        self._writer = self._open_writer()

    def close(self) -> None:
        if self.rows:
            logging.warning(f"⚠ Se descartan {len(self.rows):,} filas sin vaciar ({self._tables()})")
            self.rows = []
        if self._writer is not None:
            self._writer.close()
            self._writer = None

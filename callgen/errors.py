"""
Jerarquía de errores del generador.

- ConfigError: configuración inválida, se detecta antes de generar nada.
- SinkError: fallo escribiendo en QuestDB, en el archivo ILP o en el JSON
  de topología. Siempre fatal, no hay reintentos.
"""

from typing import Optional


class GeneratorError(Exception):
    """Base de todos los errores del generador."""


class ConfigError(GeneratorError):
    pass


class SinkError(GeneratorError):
    def __init__(self, stage: str, message: str, table: Optional[str] = None, rows: int = 0):
        self.stage = stage
        self.table = table
        self.rows = rows
        detail = f"{stage}: {message}"
        if table:
            detail += f" (table={table}, rows={rows})"
        super().__init__(detail)

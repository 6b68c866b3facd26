"""Generador de topología y carga de llamadas para redes de radio troncalizada sobre QuestDB."""

__version__ = "0.1.0"

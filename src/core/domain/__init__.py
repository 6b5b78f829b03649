"""Modelos del dominio.

Reglas:
- Estructuras de datos puras y estrictas (Pydantic v2).
- El dominio no conoce ficheros, HTTP ni CLI: solo key paths y ediciones.
"""

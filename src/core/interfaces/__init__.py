"""Interfaces/abstracciones del Core.

Reglas:
- Define contratos (Protocol) que implementan las celdas de estado.
- El código cliente depende del contrato, no de `Atom`/`Ref`/`Agent`.
"""

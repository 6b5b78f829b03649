"""Entry point de desarrollo sin instalar el paquete.

Uso:
- `python -m main assoc-in config.json server.port 8080`

El código vive en `src/`, así que se añade al `sys.path` antes de importar
la CLI.
"""

from __future__ import annotations

import sys
from pathlib import Path


def main() -> None:
    src = Path(__file__).resolve().parent / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))

    from cli.main import run  # noqa: PLC0415

    run()


if __name__ == "__main__":
    main()

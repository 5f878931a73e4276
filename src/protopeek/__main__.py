"""Entry point for `python -m protopeek` and the `protopeek` console script."""

from __future__ import annotations

from protopeek.cli import main

if __name__ == "__main__":
    main()

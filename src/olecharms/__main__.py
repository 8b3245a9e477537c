"""Allow running olecharms with ``python -m olecharms``."""

from .cli import main

if __name__ == "__main__":
    main()

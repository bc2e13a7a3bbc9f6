"""Allow running as ``python -m faceverify``."""

from .cli import main

if __name__ == "__main__":
    main()

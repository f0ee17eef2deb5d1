"""``python -m algora1``."""

from .cli import main

main()

"""``python -m algora1.remote {menu,session}``."""

from .cli import main

main()

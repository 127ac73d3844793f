"""Allow ``python -m ghswitcher``; the guard hook falls back to this."""

from .cli import main

main()

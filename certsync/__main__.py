"""Allow running as `python -m certsync`."""

from .main import main

main()

"""Allow running as ``python -m quire``."""

from quire.main import main

main()

"""Allow ``python -m blphttp``."""

from blphttp.cli.main import main

main()

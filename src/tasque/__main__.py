"""Allow ``python -m tasque``."""

from tasque.cli import main

main()

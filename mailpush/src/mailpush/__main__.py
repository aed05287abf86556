"""Allow ``python -m mailpush``."""

from .cli import main

main()

"""python -m warden"""

from .cli import main

main()

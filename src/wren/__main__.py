"""``python -m wren`` entry point."""

from wren.cli import main

main()

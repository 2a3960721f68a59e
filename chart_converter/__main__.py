"""Package entry point for ``python -m chart_converter``."""

from chart_converter.cli import main

if __name__ == "__main__":
    main()

"""ontocli: Turtle ontologies of noun-verb commands to typer command-line programs."""

__version__ = "0.1.0"

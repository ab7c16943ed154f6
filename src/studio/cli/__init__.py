"""studio-core command-line interface (typer)."""

from studio.cli.app import app

app()

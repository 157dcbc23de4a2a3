from webvlog.cli import app

app()

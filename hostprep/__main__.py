from hostprep.cli import app

app(prog_name="hostprep")

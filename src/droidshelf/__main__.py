from droidshelf.cli.main import app

app(prog_name="droidshelf")

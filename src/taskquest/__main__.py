from taskquest.main import run

run()

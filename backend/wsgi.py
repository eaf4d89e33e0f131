from riderpos import create_app

app = create_app()

from app.insign import create_app

app = create_app()

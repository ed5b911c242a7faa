from app.gateway import create_app

app = create_app()

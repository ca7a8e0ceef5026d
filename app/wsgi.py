from app.salon import create_app

app = create_app()

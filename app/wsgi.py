from app.cellhub import create_app

app = create_app()

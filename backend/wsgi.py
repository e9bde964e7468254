# backend/wsgi.py
from courtside import create_app

app = create_app()

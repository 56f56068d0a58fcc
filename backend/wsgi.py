# backend/wsgi.py
from billtracker import create_app

app = create_app()

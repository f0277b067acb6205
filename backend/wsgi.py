# backend/wsgi.py
from lrsync import create_app

app = create_app()

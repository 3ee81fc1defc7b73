# backend/wsgi.py
from mdesk import create_app

app = create_app()

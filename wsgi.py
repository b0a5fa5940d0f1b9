# wsgi.py
from app import create_app

# gunicorn wsgi:application
application = create_app()

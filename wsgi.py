"""
WSGI entry point (gunicorn ``wsgi:app``) and FLASK_APP target for
``flask db upgrade`` / ``flask create-user``.
"""

from fieldops import create_app

app = create_app()

# passenger_wsgi.py
import os
import sys

APP_ROOT = os.path.dirname(os.path.abspath(__file__))
if APP_ROOT not in sys.path:
    sys.path.insert(0, APP_ROOT)

from layofftracker import create_app  # noqa: E402

# WSGI callable for Passenger/cPanel (or any WSGI server)
application = create_app()

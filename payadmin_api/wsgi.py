# payadmin_api/wsgi.py
import os
from payadmin_api import create_app

app = create_app(os.getenv("PAYADMIN_CONFIG"))

import os

from backoffice_api import create_app

app = create_app(os.getenv("BACKOFFICE_CONFIG"))

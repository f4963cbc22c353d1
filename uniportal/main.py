# uvicorn uniportal.main:app
from uniportal.api import create_app

app = create_app()

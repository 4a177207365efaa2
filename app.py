# =======================================================================================
# app.py - Development entry point (`python app.py`)
# =======================================================================================
import uvicorn

from campus_access.config import config
from campus_access.main import app

if __name__ == "__main__":
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)

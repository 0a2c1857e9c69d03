# server.py  (repo root)
import uvicorn

from permitdesk import settings
from permitdesk.main import app

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL.lower())

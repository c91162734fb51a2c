import uvicorn

from viewguard.config import settings
from viewguard.main import app

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)

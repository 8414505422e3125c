import uvicorn

from . import config

if __name__ == "__main__":
    uvicorn.run("inventory_tracker.main:app", host=config.APP_HOST, port=config.APP_PORT)

from fastapi import FastAPI
import logging

from packet_pushers.api.routes import router
from packet_pushers.settings import load_dotenv_if_present, settings_from_env

load_dotenv_if_present()

app = FastAPI(title="packet-pushers", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=settings_from_env().log_level)
logger = logging.getLogger(__name__)


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "packet-pushers", "version": "0.1.0"}

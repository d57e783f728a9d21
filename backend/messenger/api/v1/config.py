from fastapi import APIRouter
from messenger.core import config

router = APIRouter(prefix="/config", tags=["config"])

@router.get("/client")
async def get_client_config():
    """
    Returns the liveness windows shared between client and server.
    Start-up sync for the web client.
    """
    return {
        "online_threshold_seconds": config.ONLINE_THRESHOLD_SECONDS,
        "typing_window_seconds": config.TYPING_WINDOW_SECONDS,
        "client_typing_window_seconds": config.CLIENT_TYPING_WINDOW_SECONDS,
        "typing_throttle_seconds": config.TYPING_THROTTLE_SECONDS,
        "heartbeat_interval_seconds": config.HEARTBEAT_INTERVAL_SECONDS,
        "default_page_size": config.DEFAULT_PAGE_SIZE,
        "max_page_size": config.MAX_PAGE_SIZE,
    }

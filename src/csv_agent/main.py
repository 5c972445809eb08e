from dotenv import load_dotenv
load_dotenv()

import uvicorn
from src.csv_agent.config import settings
from src.csv_agent.utils.logger import get_logger

logger = get_logger(__name__)


def _log_banner() -> None:
    translator = "Groq " + settings.DEFAULT_MODEL if settings.GROQ_API_KEY else "off (set GROQ_API_KEY)"
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} on http://{settings.HOST}:{settings.PORT}")
    logger.info(f"Command translator: {translator}, {settings.TRANSLATOR_MAX_RETRIES} retries")
    logger.info(f"Upload limit: {settings.MAX_UPLOAD_SIZE_MB}MB, log level {settings.LOG_LEVEL}")
    if settings.DEBUG:
        logger.info("Debug mode: auto-reload on, session state is lost on every reload")


def start():
    """Serve the editing API; one process holds the single in-memory session."""
    _log_banner()
    try:
        uvicorn.run(
            "src.csv_agent.api.routes:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=settings.DEBUG,
            workers=1,
            log_level=settings.LOG_LEVEL.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Editing session closed.")


if __name__ == "__main__":
    start()

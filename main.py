import sys

from dotenv import load_dotenv
from loguru import logger

from therapy_booking.api.booking_server import run_server
from therapy_booking.config import get_settings

load_dotenv()


def setup_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
            "<level>{message}</level>"
        ),
    )


if __name__ == "__main__":
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Starting booking server")
    run_server(host=settings.api_host, port=settings.api_port)

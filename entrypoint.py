import uvicorn
from constants import HOST, LOG_FILE, LOG_LEVEL, PORT
from logging_config import get_logger, setup_logging

# Setup logging before building the app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

logger = get_logger(__name__)


def main():
    logger.info(f"Starting pairchat server on {HOST}:{PORT}")
    uvicorn.run("app:build_default_app", factory=True, host=HOST, port=PORT)


if __name__ == "__main__":
    main()

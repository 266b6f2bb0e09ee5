# Configure logging FIRST before anything else
from agora.core.logger import logger, configure_logging, register_logger

# Initialize logging using the logger module's initializer
configure_logging()

__all__ = ["logger", "configure_logging", "register_logger"]

import logging
import os
from pathlib import Path


def create_logger(
    log_level: str = "INFO",
    logger_name: str = "chat-agent",
    logs_dir: str | Path | None = None,
) -> logging.Logger:
    """
    Create a logger that outputs to console and optionally to a file.

    Args:
        log_level (str): Logging level (e.g., "INFO", "DEBUG").
        logger_name (str): Name for the logger instance. Also used as the log file name.
        logs_dir (str | Path | None): Directory for log files. If None, only console
            logging is configured.

    Returns:
        logging.Logger: Configured logger instance.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.DEBUG))
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if not logger.handlers:  # Prevent handler duplication
        # Console handler (stdio) - always add this
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if logs_dir:
            try:
                logs_path = Path(logs_dir)
                logs_path.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(logs_path / f"{logger_name}.log")
                file_handler.setFormatter(formatter)
                logger.addHandler(file_handler)
            except OSError as e:
                # If file logging fails, just continue with console logging
                logger.warning(f"File logging disabled: {e}")

    return logger


def get_parameters(
    param_names: list[str] | str,
    base_path: str = "",
) -> dict[str, str | None]:
    """
    Retrieve configuration parameters from environment variables.
    THIS FUNCTION EXISTS AS A TESTING HOOK.

    Args:
        param_names (list[str] | str): The parameter name(s) to retrieve.
        base_path (str): Optional prefix prepended to each upper-cased name
            (e.g. "CHAT_AGENT_"). Keys in the result never carry the prefix.

    Returns:
        dict[str, str | None]: Lower-cased parameter names mapped to their values,
            or None where the environment variable is not set.

    Note:
        RE-IMPLEMENT USING A SECRETS SERVICE for production deployments.
    """
    if isinstance(param_names, str):
        param_names = [param_names]

    result: dict[str, str | None] = {}
    for param_name in param_names:
        # Parameters are stored in the environment variables in uppercase
        # But we want to store them in lowercase in the result dictionary
        env_name = f"{base_path}{param_name}".upper()
        result[param_name.lower()] = os.getenv(env_name)
    return result

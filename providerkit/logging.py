import logging

logger = logging.getLogger("providerkit")


def setup_logging(verbose: bool = False) -> None:
    """Attach a stderr handler to the package logger."""
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

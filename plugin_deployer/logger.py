import logging

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(level="INFO"):
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO),
                        format=LOG_FORMAT)


def get_logger(name="plugin_deployer"):
    if not name.startswith("plugin_deployer"):
        name = f"plugin_deployer.{name}"
    return logging.getLogger(name)

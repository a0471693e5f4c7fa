# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import logging
import sys

from asgi_correlation_id import CorrelationIdFilter, correlation_id

from common.config import Config
from common.logging import splunk

_correlation_id_length = 16


def get_log_id() -> str:
    log_id = correlation_id.get()
    return log_id[:_correlation_id_length] if log_id else "-"


def configure_logging(config: Config) -> None:
    console_handler = logging.StreamHandler(stream=sys.stdout)

    # Add correlation id to handlers
    console_handler.addFilter(CorrelationIdFilter(uuid_length=_correlation_id_length))

    if config.enable_splunk_log:
        console_handler.setFormatter(splunk.SplunkFormatter(defaults={"app_name": config.app_name}))

    logging.basicConfig(handlers=[console_handler], level=config.log_level)

    # Configure all loggers to use the console logger
    for logger in logging.root.manager.loggerDict.values():
        if isinstance(logger, logging.Logger) and console_handler not in logger.handlers:
            logger.handlers = [console_handler]
            logger.propagate = False

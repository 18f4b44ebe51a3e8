"""
Logging
"""

from __future__ import annotations

import logging
import os

from gradops import callbacks, graph

LOG_LEVEL_ENV_SETTER = "GRADOPS_LOGLEVEL"


def setup_logger(name: str = "gradops") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging._nameToLevel[os.environ.get(LOG_LEVEL_ENV_SETTER, "WARNING").upper()])
    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-10s%(funcName)s: - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(console_handler)
    return logger


default_logger = setup_logger()


class NodeLogger(callbacks.OnNodeCreationCallBack):
    def __init__(self, logger: logging.Logger = default_logger) -> None:
        super().__init__()
        self._logger = logger

    def on_node_creation(self, node: graph.Node) -> None:
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.log(
                logging.DEBUG,
                "%(op)-10s(%(in shapes)-20s) → %(out shape)s",
                {
                    "in shapes": ", ".join(map(str, (inp.shape.dims for inp in node.inputs))),
                    "op": "placeholder" if node.op is None else str(node.op),
                    "out shape": repr(node.shape),
                },
            )

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(verbosity={self._logger.level})"

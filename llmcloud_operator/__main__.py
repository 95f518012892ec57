import logging
import os
import socket

import kopf

from .config import OperatorConfig
from .log import configure_logging

# Registers the kopf handlers
from . import handlers  # noqa: F401


def main() -> None:
    config = OperatorConfig.from_env()
    configure_logging(config.log_level)

    logging.info("llmcloud operator starting")
    logging.info("Watching llmcloud resources across all namespaces")

    leader_id = os.environ.get("POD_NAME", socket.gethostname())
    logging.info(f"Configuring leader election with leader ID: {leader_id}")

    kopf.run(
        standalone=True,
        clusterwide=True,
        peering_name=os.environ.get("KOPF_PEERING", "llmcloud-operator"),
        identity=leader_id,
        priority=0,
    )


if __name__ == "__main__":
    main()

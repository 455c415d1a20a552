# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Command-line entrypoint: ctrl-gateway [--config PATH] [--host HOST] [--port PORT]
"""

import argparse
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from ctrl_gateway.core.config import get_config, load_config
from ctrl_gateway.core.logging import configure_logging
from ctrl_gateway.server import Gateway


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the CTRL MCP gateway")
    parser.add_argument(
        "--config",
        help="Path to gateway YAML config (default: $CTRL_GATEWAY_CONFIG_PATH or configs/gateway.yaml)",
    )
    parser.add_argument("--host", help="Bind address (overrides config)")
    parser.add_argument("--port", type=int, help="Listen port (overrides config)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    # Local development convenience; deployments set real env vars
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    args = parse_args(argv)
    config = load_config(args.config) if args.config else get_config()
    if args.host:
        config = replace(config, host=args.host)
    if args.port:
        config = replace(config, port=args.port)

    configure_logging(config.log_level, config.log_format)
    Gateway(config).run()


if __name__ == "__main__":
    main()

#  AgentBoard - Entry Point
#
#  Launches the FastAPI server via uvicorn.
#
#  Depends on: agentboard/app.py, agentboard/config.py, agentboard/logging_config.py
#  Used by:    (run directly)

import argparse
import os
import sys
from pathlib import Path

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="AgentBoard server")
    parser.add_argument("--config", help="path to config.json (default: ./config.json)")
    args = parser.parse_args()

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}", file=sys.stderr)
            sys.exit(1)
        # Read by agentboard.config at import time
        os.environ["AGENTBOARD_CONFIG"] = str(config_path.resolve())

    from agentboard.config import cfg
    from agentboard.logging_config import setup_logging

    setup_logging(
        level=cfg("server.log_level", "INFO"),
        fmt=cfg("server.log_format", "json"),
    )

    uvicorn.run(
        "agentboard.app:app",
        host=cfg("server.host", "0.0.0.0"),
        port=cfg("server.port", 5300),
        reload=cfg("server.reload", False),
    )


if __name__ == "__main__":
    main()

"""Server command: serve."""

import os
import sys

from paperscout.config import get_config, save_config


def register(subparsers):
    """Register server commands."""
    saved_port = get_config().get("port", 8240)

    p = subparsers.add_parser("serve", help="Start the REST API server")
    p.add_argument(
        "--host", type=str, default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    p.add_argument(
        "--port", type=int, default=saved_port, help=f"Port to listen on (default: {saved_port})"
    )
    p.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    p.set_defaults(func=cmd_serve)


def cmd_serve(args):
    """Start the REST API server."""
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn not installed. Install with: pip install paperscout[api]")
        sys.exit(1)

    if args.db:
        os.environ["PAPERSCOUT_DB_PATH"] = args.db

    # Remember the port for next time
    config = get_config()
    if config.get("port") != args.port:
        config["port"] = args.port
        try:
            save_config(config)
        except OSError as e:
            print(f"Warning: could not save config: {e}")

    print(f"Starting paperscout API server on {args.host}:{args.port}")
    print(f"  Docs: http://{args.host}:{args.port}/docs")
    print("Press Ctrl+C to stop\n")

    uvicorn.run(
        "paperscout.api:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )

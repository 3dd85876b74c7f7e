"""LLM Debugger CLI core.

Minimal command-line interface for running and inspecting the debugger server.
Currently supports:

  - `llm-debugger serve [--host H] [--port P]`
  - `llm-debugger models list [--json]`
  - `llm-debugger config show [--json]`

Every command accepts `--config PATH` and `--log-level LEVEL`.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from llm_debugger import __version__
from llm_debugger.config import ServerConfig, build_server_config
from llm_debugger.handlers.meta import model_names
from llm_debugger.llm.exceptions import ConfigError


def _load(args: argparse.Namespace) -> ServerConfig:
    return build_server_config(args.config)


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP server.

    Args:
        args: Parsed CLI arguments.

    Returns:
        Process exit code.
    """
    # Imported lazily so the inspection commands do not need uvicorn.
    from llm_debugger.server import run  # pylint: disable=import-outside-toplevel

    run(_load(args), host=args.host, port=args.port, log_level=args.log_level)
    return 0


def cmd_models_list(args: argparse.Namespace) -> int:
    """List the public model names and print them.

    Args:
        args: Parsed CLI arguments.

    Returns:
        Process exit code.
    """
    config = _load(args)
    registry = config.model_registry
    items = []
    for name in model_names(config):
        if name in registry.trigger_models:
            kind = "triggers"
        elif name in registry.behavior_models:
            kind = f"behavior:{registry.behavior_models[name].behavior or name.lower()}"
        else:
            kind = "builtin"
        items.append({"name": name, "kind": kind})

    if args.json:
        print(json.dumps(items, indent=2, sort_keys=True))
        return 0

    w_name = max(len(i["name"]) for i in items)
    for i in items:
        print(f"{i['name']:<{w_name}}  {i['kind']}")
    return 0


def cmd_config_show(args: argparse.Namespace) -> int:
    """Print the effective configuration.

    Args:
        args: Parsed CLI arguments.

    Returns:
        Process exit code.
    """
    config = _load(args)
    items = config.describe()
    if args.json:
        payload = {
            "config_path": str(config.config_path) if config.config_path else None,
            "values": {i["key"]: i["value"] for i in items},
        }
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 0

    print(f"config file: {config.config_path or '(none)'}")
    w_key = max(len(i["key"]) for i in items)
    w_env = max(len(i["env"]) for i in items)
    for i in items:
        print(f"{i['key']:<{w_key}}  {i['env']:<{w_env}}  {i['value']!s}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the LLM Debugger CLI entry point.

    Args:
        argv: Optional list of CLI arguments excluding the program name.

    Returns:
        Process exit code.
    """
    argv = argv if argv is not None else sys.argv[1:]

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="Config file (YAML or JSON)")
    common.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")

    p = argparse.ArgumentParser(prog="llm-debugger")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="cmd", required=True)

    serve = sub.add_parser("serve", parents=[common], help="Run the HTTP server")
    serve.add_argument("--host", default=None, help="Interface to bind (overrides config)")
    serve.add_argument("--port", type=int, default=None, help="Port to listen on (overrides config)")
    serve.set_defaults(func=cmd_serve)

    models = sub.add_parser("models", help="Model commands")
    models_sub = models.add_subparsers(dest="models_cmd", required=True)
    models_list = models_sub.add_parser("list", parents=[common], help="List public model names")
    models_list.add_argument("--json", action="store_true", help="Output JSON")
    models_list.set_defaults(func=cmd_models_list)

    config = sub.add_parser("config", help="Configuration commands")
    config_sub = config.add_subparsers(dest="config_cmd", required=True)
    config_show = config_sub.add_parser("show", parents=[common], help="Show the effective configuration")
    config_show.add_argument("--json", action="store_true", help="Output JSON")
    config_show.set_defaults(func=cmd_config_show)

    ns = p.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(ns.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return ns.func(ns)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())

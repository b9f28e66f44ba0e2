"""Config commands for MemoryLink CLI."""

import json
from typing import TYPE_CHECKING

from memorylink.cli.commands.helpers import print_json
from memorylink.config import MemoryLinkConfig, save_config
from memorylink.protocols import ConfigError

if TYPE_CHECKING:
    from memorylink import MemoryLink


def _parse_value(raw: str):
    """JSON when it parses (numbers, booleans, lists), otherwise the plain string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def cmd_config(args, ml: "MemoryLink"):
    """Handle config subcommands."""
    if args.config_action == "show":
        print_json(ml.config.to_dict())
        return

    data = ml.config.to_dict()
    if args.key not in data:
        raise ConfigError(f"Unknown config key '{args.key}'. Known keys: {', '.join(sorted(data))}")
    data[args.key] = _parse_value(args.value)
    config = MemoryLinkConfig.from_dict(data)
    path = save_config(ml.root, config)
    print(f"✓ Set {args.key} = {json.dumps(data[args.key])} in {path.relative_to(ml.root)}")

"""Project initialization command for MemoryLink CLI."""

from typing import TYPE_CHECKING

from memorylink.config import save_config
from memorylink.storage.paths import config_path

if TYPE_CHECKING:
    from memorylink import MemoryLink


def cmd_init(args, ml: "MemoryLink"):
    """Create .memorylink/ and a default config.json."""
    created = ml.init()
    if not config_path(ml.root).exists():
        path = save_config(ml.root, ml.config)
        created.append(path)

    if not created:
        print(f"MemoryLink already initialized at {ml.root}")
        return
    print(f"Initialized MemoryLink at {ml.root}")
    for path in created:
        print(f"  created {path.relative_to(ml.root)}")

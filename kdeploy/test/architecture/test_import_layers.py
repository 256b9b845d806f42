from __future__ import annotations

import pytest

from ._gate import require_arch_checks_enabled
from ._utils import iter_python_files, matches_prefix, package_root, parse_imports

# Layer -> module prefixes it must never import
FORBIDDEN: dict[str, tuple[str, ...]] = {
    "core": (
        "kdeploy.platform",
        "kdeploy.output",
        "kdeploy.remote",
        "kdeploy.release",
        "kdeploy.services",
        "kdeploy.cli",
        "typer",
        "rich",
    ),
    "platform": ("kdeploy.release", "kdeploy.services", "kdeploy.cli", "typer", "rich"),
    "remote": ("kdeploy.release", "kdeploy.services", "kdeploy.cli", "typer", "rich"),
    "release": ("kdeploy.services", "kdeploy.cli", "typer", "rich"),
    "services": ("kdeploy.cli", "typer", "rich"),
}


@pytest.mark.parametrize("layer", sorted(FORBIDDEN))
def test_layer_does_not_import_outer_layers(layer: str) -> None:
    require_arch_checks_enabled()

    root = package_root()
    offenders: list[str] = []
    for file_path in iter_python_files(root / layer):
        rel = file_path.relative_to(root)
        for item in parse_imports(file_path):
            if any(matches_prefix(item.module, prefix) for prefix in FORBIDDEN[layer]):
                offenders.append(f"{rel}:{item.line}: forbidden import '{item.module}'")

    assert not offenders, f"{layer} dependency violations:\n" + "\n".join(offenders)

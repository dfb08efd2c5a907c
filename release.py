"""
Keep the version constants of smbroker/__init__.py in step with pyproject.toml.

    python release.py          # write the pyproject version into the package
    python release.py --check  # exit 1 if the two disagree
"""

import re
import sys
from pathlib import Path


ROOT = Path(__file__).parent
TOML_PATH = ROOT / "pyproject.toml"
PACKAGE_INIT_PATH = ROOT / "smbroker" / "__init__.py"

VERSION_FIELDS = ("version_major", "version_minor", "version_patch")


def parse_version(version_str: str) -> tuple[int, int, int]:
    """Parse a version string into major, minor, patch tuple."""
    match = re.match(r"^(\d+)\.(\d+)\.(\d+)$", version_str.strip("\"'"))
    if not match:
        raise ValueError(f"Invalid version format: {version_str}")
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def get_project_version() -> tuple[int, int, int]:
    """Extract the [project] version from the TOML file."""
    content = TOML_PATH.read_text()
    match = re.search(r'^version\s*=\s*["\'](\d+\.\d+\.\d+)["\']', content, re.MULTILINE)

    if not match:
        raise ValueError(f"No version field found in {TOML_PATH.name}")

    return parse_version(match.group(1))


def get_package_version() -> tuple[int, int, int]:
    """Extract the version constants from the package."""
    content = PACKAGE_INIT_PATH.read_text(encoding="utf-8")
    values = []
    for name in VERSION_FIELDS:
        match = re.search(rf"^{name}\s*=\s*(\d+)", content, re.MULTILINE)
        if not match:
            raise ValueError(f"Pattern not found: {name}")
        values.append(int(match.group(1)))

    return values[0], values[1], values[2]


def update_package_version(new_version: tuple[int, int, int]) -> None:
    """Rewrite the version constants of the package."""
    content = PACKAGE_INIT_PATH.read_text(encoding="utf-8")

    for name, value in zip(VERSION_FIELDS, new_version):
        content, count = re.subn(
            rf"^{name}\s*=\s*\d+", f"{name} = {value}", content, flags=re.MULTILINE
        )
        if count == 0:
            raise ValueError(f"Pattern not found: {name}")

    PACKAGE_INIT_PATH.write_text(content, encoding="utf-8")
    print(f"Updated {PACKAGE_INIT_PATH}: {'.'.join(map(str, new_version))}")


def main(argv: list[str]) -> int:
    project_version = get_project_version()

    if "--check" in argv:
        package_version = get_package_version()
        if package_version != project_version:
            print(
                f"Version mismatch: pyproject.toml has {project_version}, "
                f"smbroker has {package_version}"
            )
            return 1
        return 0

    update_package_version(project_version)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))

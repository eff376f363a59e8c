"""Dependency analysis from the manifest files at a project root."""

from __future__ import annotations

import json
import re
import tomllib
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Iterable, List, Set

from .logging import get_logger
from .models import DependencyAnalysis

_PYTHON_FRAMEWORKS = {"fastapi": "FastAPI", "django": "Django", "flask": "Flask"}
_NODE_FRAMEWORKS = {"express": "Express", "next": "Next.js", "react": "React", "vue": "Vue"}
_REQUIREMENT_SPLIT = re.compile(r"[<>=!~;\[ ]")
_GRADLE_COORDINATE = re.compile(r"['\"]([\w\-.]+:[\w\-.]+)(?::[\w\-.]+)?['\"]")

logger = get_logger("dependencies")


def analyze_dependencies(root: str | Path) -> DependencyAnalysis:
    """Collect declared dependencies and well-known frameworks for ``root``."""
    root_path = Path(root).expanduser().resolve()
    if not root_path.is_dir():
        raise FileNotFoundError(f"Project path not found: {root}")

    manifests = [
        name
        for name in (
            "requirements.txt",
            "pyproject.toml",
            "package.json",
            "pom.xml",
            "build.gradle",
            "build.gradle.kts",
        )
        if (root_path / name).is_file()
    ]
    python = load_python_dependencies(root_path)
    node = load_node_dependencies(root_path)
    java = load_java_dependencies(root_path)

    frameworks = _detect_frameworks(python, _PYTHON_FRAMEWORKS)
    frameworks += _detect_frameworks(node["dependencies"] + node["devDependencies"], _NODE_FRAMEWORKS)
    if any("spring-boot" in dep.lower() or "springframework" in dep.lower() for dep in java):
        frameworks.append("Spring Boot")

    logger.debug("Found %d manifest(s) under %s", len(manifests), root_path)
    return DependencyAnalysis(
        python=python,
        node=node["dependencies"],
        node_dev=node["devDependencies"],
        java=java,
        frameworks=frameworks,
        manifests=manifests,
    )


def load_python_dependencies(root: Path) -> List[str]:
    """Collect Python dependencies from requirements.txt and pyproject.toml."""
    deps: Set[str] = set()

    requirements = root / "requirements.txt"
    if requirements.exists():
        deps.update(_parse_requirements(requirements))

    pyproject = root / "pyproject.toml"
    if pyproject.exists():
        deps.update(_parse_pyproject(pyproject))

    return sorted(deps)


def _parse_requirements(path: Path) -> List[str]:
    packages: List[str] = []
    for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        stripped = line.split("#", 1)[0].strip()
        if not stripped or stripped.startswith("-"):
            continue
        name = _REQUIREMENT_SPLIT.split(stripped, 1)[0].strip()
        if name:
            packages.append(name)
    return packages


def _parse_pyproject(path: Path) -> List[str]:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Unable to parse %s: %s", path, exc)
        return []

    dependencies: List[object] = []
    project = data.get("project")
    if isinstance(project, dict):
        dependencies.extend(project.get("dependencies", []) or [])
        optional = project.get("optional-dependencies", {}) or {}
        for values in optional.values():
            dependencies.extend(values or [])

    tool = data.get("tool")
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    if isinstance(poetry, dict):
        poetry_deps = poetry.get("dependencies", {}) or {}
        dependencies.extend(poetry_deps.keys())

    packages: Set[str] = set()
    for dep in dependencies:
        if isinstance(dep, str):
            name = _REQUIREMENT_SPLIT.split(dep, 1)[0].strip()
            if name and name.lower() != "python":
                packages.add(name)
    return sorted(packages)


def load_node_dependencies(root: Path) -> Dict[str, List[str]]:
    """Return Node.js dependencies separated into runtime/dev lists."""
    empty: Dict[str, List[str]] = {"dependencies": [], "devDependencies": []}
    package_json = root / "package.json"
    if not package_json.exists():
        return empty
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Unable to parse %s: %s", package_json, exc)
        return empty
    if not isinstance(data, dict):
        return empty

    def _extract(key: str) -> List[str]:
        deps = data.get(key, {})
        if isinstance(deps, dict):
            return sorted(deps.keys())
        return []

    return {
        "dependencies": _extract("dependencies"),
        "devDependencies": _extract("devDependencies"),
    }


def load_java_dependencies(root: Path) -> List[str]:
    """Collect Java dependencies from pom.xml and build.gradle files."""
    deps: Set[str] = set()
    pom = root / "pom.xml"
    if pom.exists():
        deps.update(_parse_pom_dependencies(pom))
    for name in ("build.gradle", "build.gradle.kts"):
        gradle = root / name
        if gradle.exists():
            deps.update(_parse_gradle_dependencies(gradle.read_text(encoding="utf-8", errors="replace")))
    return sorted(deps)


def _parse_pom_dependencies(path: Path) -> Set[str]:
    deps: Set[str] = set()
    try:
        root = ET.fromstring(path.read_text(encoding="utf-8"))
    except ET.ParseError as exc:
        logger.warning("Unable to parse %s: %s", path, exc)
        return deps

    match = re.match(r"\{(.+)}", root.tag)
    prefix = f"{{{match.group(1)}}}" if match else ""
    for dep in root.findall(f".//{prefix}dependency"):
        group = dep.findtext(f"{prefix}groupId", default="")
        artifact = dep.findtext(f"{prefix}artifactId", default="")
        if group and artifact:
            deps.add(f"{group}:{artifact}")
    return deps


def _parse_gradle_dependencies(content: str) -> Set[str]:
    deps: Set[str] = set()
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("//"):
            continue
        if any(token in line for token in ("implementation", "api", "compile", "runtimeOnly")):
            match = _GRADLE_COORDINATE.search(line)
            if match:
                deps.add(match.group(1))
    return deps


def _detect_frameworks(dependencies: Iterable[str], mapping: Dict[str, str]) -> List[str]:
    lower = {dep.lower() for dep in dependencies}
    return [label for key, label in mapping.items() if key in lower]


__all__ = [
    "analyze_dependencies",
    "load_java_dependencies",
    "load_node_dependencies",
    "load_python_dependencies",
]

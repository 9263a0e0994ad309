"""
Reading and unpacking package archives.

A package archive is a ZIP file with a single manifest (``<id>.nuspec``, XML)
at its root describing the package.
"""
from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path
from typing import List, Optional
from xml.etree import ElementTree

from package_resolver.domain.models import PackageDependency, PackageDependencySet, PackageMetadata

logger = logging.getLogger(__name__)

MANIFEST_EXTENSION = ".nuspec"

# Manifest element name -> PackageMetadata field
_METADATA_FIELDS = {
    "id": "id",
    "version": "version",
    "title": "title",
    "authors": "authors",
    "owners": "owners",
    "description": "description",
    "summary": "summary",
    "tags": "tags",
    "licenseUrl": "license_url",
    "projectUrl": "project_url",
    "iconUrl": "icon_url",
}


def _local_name(tag: str) -> str:
    # Manifests are published under several XML namespaces.
    return tag.rsplit("}", 1)[-1]


def _child(element: ElementTree.Element, name: str) -> Optional[ElementTree.Element]:
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def _parse_dependencies(dependencies: ElementTree.Element) -> List[PackageDependencySet]:
    sets: List[PackageDependencySet] = []
    ungrouped: List[PackageDependency] = []
    for child in dependencies:
        name = _local_name(child.tag)
        if name == "group":
            group = PackageDependencySet(target_framework=child.get("targetFramework"))
            for dep in child:
                if _local_name(dep.tag) == "dependency" and dep.get("id"):
                    group.dependencies.append(PackageDependency(id=dep.get("id"), version_range=dep.get("version")))
            sets.append(group)
        elif name == "dependency" and child.get("id"):
            ungrouped.append(PackageDependency(id=child.get("id"), version_range=child.get("version")))

    if ungrouped:
        sets.insert(0, PackageDependencySet(dependencies=ungrouped))
    return sets


def parse_manifest(content: bytes) -> PackageMetadata:
    """Parse a package manifest document into PackageMetadata."""
    # No DTD, so no entity declarations to expand.
    if b"<!DOCTYPE" in content.upper():
        raise ValueError("Package manifest must not declare a DOCTYPE")
    root = ElementTree.fromstring(content)
    metadata = _child(root, "metadata")
    if metadata is None:
        raise ValueError("Package manifest has no <metadata> element")

    values = {}
    for element_name, field_name in _METADATA_FIELDS.items():
        element = _child(metadata, element_name)
        if element is not None and element.text and element.text.strip():
            values[field_name] = element.text.strip()

    if "id" not in values or "version" not in values:
        raise ValueError("Package manifest is missing id or version")

    dependencies = _child(metadata, "dependencies")
    if dependencies is not None:
        values["dependency_sets"] = _parse_dependencies(dependencies)

    return PackageMetadata(**values)


def read_package_archive(path: Path) -> PackageMetadata:
    """Read the manifest from a package archive on disk."""
    with zipfile.ZipFile(path, "r") as zip_ref:
        manifests = [
            name for name in zip_ref.namelist()
            if name.lower().endswith(MANIFEST_EXTENSION) and "/" not in name
        ]
        if not manifests:
            raise ValueError(f"No {MANIFEST_EXTENSION} manifest found in {path.name}")
        with zip_ref.open(manifests[0], "r") as src:
            package = parse_manifest(src.read())

    package.package_path = str(path.resolve())
    return package


def extract_package(archive_path: Path, install_root: Path, package: PackageMetadata) -> Path:
    """
    Extract a package archive into ``<install_root>/<id>.<version>``.

    An existing install directory is replaced.
    """
    target_dir = install_root / f"{package.id}.{package.version}"
    tmp_dir = install_root / f".{package.id}.{package.version}.tmp"
    if tmp_dir.exists():
        shutil.rmtree(tmp_dir)
    tmp_dir.mkdir(parents=True)

    try:
        with zipfile.ZipFile(archive_path, "r") as zip_ref:
            for member in zip_ref.namelist():
                # Refuse entries escaping the target directory.
                member_path = (tmp_dir / member).resolve()
                if not member_path.is_relative_to(tmp_dir.resolve()):
                    raise ValueError(f"Unsafe path in package archive: {member}")
            zip_ref.extractall(tmp_dir)

        shutil.copy2(archive_path, tmp_dir / archive_path.name)

        if target_dir.exists():
            shutil.rmtree(target_dir)
        tmp_dir.replace(target_dir)
    finally:
        if tmp_dir.exists():
            shutil.rmtree(tmp_dir, ignore_errors=True)

    logger.info(f"Installed {package.id} {package.version} to {target_dir}")
    return target_dir

"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from projreload.document import ProjectCollection
from projreload.events import EventBus
from projreload.reload import ProjectReloadManager, ReloadableProject
from projreload.services import ProjectServices

ORIGINAL_PROJECT = """<Project Sdk="Example.Sdk">
  <PropertyGroup>
    <Name>app</Name>
    <OutputDir>build/$(Name)</OutputDir>
  </PropertyGroup>
  <ItemGroup>
    <Compile Include="src/$(Name).py" />
  </ItemGroup>
</Project>
"""

UPDATED_PROJECT = """<Project Sdk="Example.Sdk" DefaultTargets="Build">
  <PropertyGroup>
    <Name>service</Name>
    <OutputDir>dist/$(Name)</OutputDir>
  </PropertyGroup>
  <ItemGroup>
    <Compile Include="src/$(Name).py" />
    <Compile Include="src/util.py" />
    <Content Include="README.md" />
  </ItemGroup>
</Project>
"""

NAMESPACED_PROJECT = """<?xml version="1.0" encoding="utf-8"?>
<Project ToolsVersion="4.0" xmlns="http://schemas.microsoft.com/developer/msbuild/2003">
  <!-- Legacy project format -->
  <PropertyGroup>
    <Name>legacy</Name>
  </PropertyGroup>
  <ItemGroup>
    <Compile Include="$(Name).cs" />
  </ItemGroup>
</Project>
"""


@pytest.fixture
def original_xml() -> str:
    return ORIGINAL_PROJECT


@pytest.fixture
def updated_xml() -> str:
    return UPDATED_PROJECT


@pytest.fixture
def namespaced_xml() -> str:
    return NAMESPACED_PROJECT


@pytest.fixture
def project_file(tmp_path: Path) -> Path:
    """Write the original project definition to disk."""
    path = tmp_path / "app.proj"
    path.write_text(ORIGINAL_PROJECT)
    return path.resolve()


@pytest.fixture
def bus() -> EventBus:
    """Create a fresh event bus for each test."""
    return EventBus()


@pytest.fixture
def collection() -> ProjectCollection:
    """Registry of live documents, separate from the process-wide one."""
    return ProjectCollection("global")


@pytest.fixture
def services(project_file: Path, collection: ProjectCollection, bus: EventBus) -> ProjectServices:
    return ProjectServices.open(project_file, collection=collection, host_handle="app-hierarchy", bus=bus)


@pytest.fixture
def manager(bus: EventBus) -> ProjectReloadManager:
    return ProjectReloadManager(bus=bus)


@pytest.fixture
def project(services: ProjectServices, manager: ProjectReloadManager) -> ReloadableProject:
    return ReloadableProject(services, manager)

"""Tests for tree evaluation and publication."""

import asyncio
import logging

import pytest

from projreload.document import ProjectDocument
from projreload.events import EventBus, EventType
from projreload.services import ProjectServices, evaluate_document
from projreload.services.tree import expand_properties


class TestEvaluateDocument:
    """Tests for evaluate_document."""

    def test_properties_and_items(self, original_xml: str):
        """Properties expand references and items are grouped by type."""
        properties, items = evaluate_document(ProjectDocument.parse(original_xml))

        assert properties == {"Name": "app", "OutputDir": "build/app"}
        assert items == {"Compile": ["src/app.py"]}

    def test_last_property_definition_wins(self):
        """Later definitions override earlier ones and see their values."""
        document = ProjectDocument.parse(
            """<Project>
              <PropertyGroup><Name>a</Name></PropertyGroup>
              <PropertyGroup><Name>$(Name)-b</Name></PropertyGroup>
            </Project>"""
        )

        properties, _ = evaluate_document(document)

        assert properties["Name"] == "a-b"

    def test_items_see_properties_defined_later(self):
        """Properties are evaluated before items regardless of order."""
        document = ProjectDocument.parse(
            """<Project>
              <ItemGroup><Compile Include="$(Src)/main.py" /><Compile /></ItemGroup>
              <PropertyGroup><Src>lib</Src></PropertyGroup>
            </Project>"""
        )

        _, items = evaluate_document(document)

        assert items == {"Compile": ["lib/main.py"]}

    def test_namespaced_project(self, namespaced_xml: str):
        """Namespaced elements and comments evaluate by local name."""
        properties, items = evaluate_document(ProjectDocument.parse(namespaced_xml))

        assert properties == {"Name": "legacy"}
        assert items == {"Compile": ["legacy.cs"]}

    def test_unknown_reference_expands_to_empty(self):
        assert expand_properties("$(Missing)/x", {}) == "/x"


class TestProjectTreeService:
    """Tests for ProjectTreeService."""

    @pytest.mark.asyncio
    async def test_blocking_publish(self, services: ProjectServices, bus: EventBus):
        """A blocking publish returns with the new tree visible."""
        queue = await bus.subscribe("tree-test")

        await services.tree_service.publish_latest_tree(block_during_loading_tree=True)

        tree = services.tree_service.current_tree
        assert tree is not None
        assert tree.version == 1
        assert tree.properties["Name"] == "app"
        event = queue.get_nowait()
        assert event.type == EventType.TREE_PUBLISHED
        assert event.project_file == str(services.project_file)

    @pytest.mark.asyncio
    async def test_versions_increase(self, services: ProjectServices):
        """Each publication gets a new version."""
        await services.tree_service.publish_latest_tree()
        await services.tree_service.publish_latest_tree()

        assert services.tree_service.current_tree.version == 2

    @pytest.mark.asyncio
    async def test_non_blocking_publish(self, services: ProjectServices):
        """A non-blocking publish completes in the background."""
        await services.tree_service.publish_latest_tree(block_during_loading_tree=False)

        await services.tree_service.wait_for_pending()

        assert services.tree_service.current_tree is not None

    @pytest.mark.asyncio
    async def test_non_blocking_publish_failure_is_logged(
        self, services: ProjectServices, caplog: pytest.LogCaptureFixture
    ):
        """A background evaluation that fails is logged, not left unretrieved."""
        services.lock_service.collection.unload(services.project_file)

        with caplog.at_level(logging.ERROR, logger="projreload.services.tree"):
            await services.tree_service.publish_latest_tree(block_during_loading_tree=False)
            await services.tree_service.wait_for_pending()
            await asyncio.sleep(0)

        assert services.tree_service.current_tree is None
        assert any("Background tree publication" in record.message for record in caplog.records)

    @pytest.mark.asyncio
    async def test_publish_waits_for_writer(self, services: ProjectServices):
        """Evaluation needs read access, so it waits for a writer to finish."""
        async with services.lock_service.write_lock() as access:
            publish = asyncio.create_task(services.tree_service.publish_latest_tree())
            await asyncio.sleep(0.01)
            assert not publish.done()

            document = await access.get_project_xml(services.project_file)
            document.set_property("Name", "renamed")

        await asyncio.wait_for(publish, timeout=1)

        assert services.tree_service.current_tree.properties["Name"] == "renamed"

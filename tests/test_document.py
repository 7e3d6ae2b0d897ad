"""Tests for the project document model and collections."""

import io
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from projreload.document import ProjectCollection, ProjectDocument
from projreload.document.model import local_name
from projreload.errors import InvalidProjectFileError
from projreload.services import evaluate_document

MSBUILD_NAMESPACE = "http://schemas.microsoft.com/developer/msbuild/2003"


class UncopyableElement(ET.Element):
    """Element that fails when deep copied."""

    def __deepcopy__(self, memo):
        raise RuntimeError("dangling reference")


class TestProjectDocument:
    """Tests for ProjectDocument."""

    def test_parse_valid_project(self, original_xml: str):
        """A parsed document exposes its top-level elements and starts clean."""
        document = ProjectDocument.parse(original_xml)

        assert [child.tag for child in document.children] == ["PropertyGroup", "ItemGroup"]
        assert document.attributes == {"Sdk": "Example.Sdk"}
        assert not document.has_unsaved_changes

    def test_parse_rejects_wrong_root(self):
        """Only <Project> roots are accepted."""
        with pytest.raises(InvalidProjectFileError) as exc_info:
            ProjectDocument.parse("<Solution />")

        assert "Project" in exc_info.value.reason

    def test_parse_reports_position_of_malformed_xml(self):
        """Parse errors carry the line of the failure."""
        with pytest.raises(InvalidProjectFileError) as exc_info:
            ProjectDocument.parse("<Project>\n  <PropertyGroup>\n</Project>")

        assert exc_info.value.line == 3

    def test_load_missing_file(self, tmp_path: Path):
        """A missing file is reported as an invalid project file."""
        missing = tmp_path / "missing.proj"

        with pytest.raises(InvalidProjectFileError) as exc_info:
            ProjectDocument.load(missing)

        assert exc_info.value.path == missing

    def test_mutations_mark_dirty(self, original_xml: str):
        """Every mutation sets the dirty flag."""
        mutations = [
            lambda d: d.set_attribute("DefaultTargets", "Build"),
            lambda d: d.add_child(ET.Element("ItemGroup")),
            lambda d: d.remove_child(d.children[0]),
            lambda d: d.remove_all_children(),
            lambda d: d.set_property("Name", "other"),
            lambda d: d.add_item("Content", "README.md"),
            lambda d: d.deep_copy_from(ProjectDocument.create()),
        ]

        for mutate in mutations:
            document = ProjectDocument.parse(original_xml)
            mutate(document)
            assert document.has_unsaved_changes

    def test_save_to_sink_clears_dirty_without_writing_file(self, project_file: Path):
        """Saving to a text sink clears the flag and leaves the file alone."""
        document = ProjectDocument.load(project_file)
        document.set_property("Name", "changed")
        before = project_file.read_text()

        sink = io.StringIO()
        document.save(sink)

        assert not document.has_unsaved_changes
        assert "changed" in sink.getvalue()
        assert project_file.read_text() == before

    def test_save_to_file(self, project_file: Path):
        """Saving without a target writes the document's file."""
        document = ProjectDocument.load(project_file)
        document.add_item("Content", "README.md")

        document.save()

        reloaded = ProjectDocument.load(project_file)
        assert reloaded.structurally_equal(document)
        assert not document.has_unsaved_changes

    def test_save_without_path_fails(self):
        """In-memory documents need an explicit target."""
        with pytest.raises(ValueError):
            ProjectDocument.create().save()

    def test_to_xml_keeps_dirty_flag(self, original_xml: str):
        """Serializing for inspection does not count as saving."""
        document = ProjectDocument.parse(original_xml)
        document.set_property("Name", "changed")

        document.to_xml()

        assert document.has_unsaved_changes

    def test_deep_copy_replaces_content(self, original_xml: str, updated_xml: str):
        """deep_copy_from makes the receiver structurally equal to the source."""
        target = ProjectDocument.parse(original_xml)
        source = ProjectDocument.parse(updated_xml)

        target.deep_copy_from(source)

        assert target.structurally_equal(source)
        assert target.attributes["DefaultTargets"] == "Build"

    def test_deep_copy_is_independent(self, original_xml: str):
        """Changing the source after a copy does not affect the copy."""
        source = ProjectDocument.parse(original_xml)
        target = ProjectDocument.create()
        target.deep_copy_from(source)

        source.set_property("Name", "changed")

        assert not target.structurally_equal(source)

    def test_failed_deep_copy_leaves_target_untouched(self, original_xml: str, updated_xml: str):
        """A copy failure happens before anything is attached."""
        target = ProjectDocument.parse(original_xml)
        before = target.to_xml()
        source = ProjectDocument.parse(updated_xml)
        source.add_child(UncopyableElement("Broken"))

        with pytest.raises(RuntimeError):
            target.deep_copy_from(source)

        assert target.to_xml() == before
        assert not target.has_unsaved_changes

    def test_structural_equality_ignores_whitespace(self, original_xml: str):
        """Indentation differences do not matter."""
        compact = "".join(line.strip() for line in original_xml.splitlines())

        assert ProjectDocument.parse(compact).structurally_equal(ProjectDocument.parse(original_xml))

    def test_set_property_updates_existing(self, original_xml: str):
        """set_property overwrites an existing property in place."""
        document = ProjectDocument.parse(original_xml)

        document.set_property("Name", "renamed")

        group = document.children[0]
        assert group.find("Name").text == "renamed"
        assert len(group) == 2

    def test_namespaced_project_opens(self, tmp_path: Path, namespaced_xml: str):
        """Projects in the legacy default namespace are accepted."""
        path = tmp_path / "legacy.proj"
        path.write_text(namespaced_xml)

        document = ProjectCollection().open(path)

        assert document.namespace == MSBUILD_NAMESPACE
        assert document.attributes == {"ToolsVersion": "4.0"}
        names = [local_name(child) for child in document.children]
        assert names == [None, "PropertyGroup", "ItemGroup"]

    def test_namespaced_edits_stay_in_namespace(self, tmp_path: Path, namespaced_xml: str):
        """Edits reuse existing groups and save without namespace prefixes."""
        path = tmp_path / "legacy.proj"
        path.write_text(namespaced_xml)
        document = ProjectDocument.load(path)

        document.set_property("Name", "renamed")
        document.add_item("Content", "README.md")
        document.save()

        text = path.read_text()
        assert f'xmlns="{MSBUILD_NAMESPACE}"' in text
        assert "ns0:" not in text
        assert text.count("<PropertyGroup>") == 1
        properties, items = evaluate_document(ProjectDocument.load(path))
        assert properties == {"Name": "renamed"}
        assert items == {"Compile": ["renamed.cs"], "Content": ["README.md"]}

    def test_save_keeps_comments_and_declaration(self, tmp_path: Path, namespaced_xml: str):
        """Saving an opened document writes back its comments and XML declaration."""
        path = tmp_path / "legacy.proj"
        path.write_text(namespaced_xml)
        document = ProjectDocument.load(path)

        document.set_property("Name", "renamed")
        document.save()

        text = path.read_text()
        assert text.startswith("<?xml")
        assert "<!-- Legacy project format -->" in text
        assert ProjectDocument.load(path).structurally_equal(document)

    def test_structural_equality_compares_comments(self, original_xml: str):
        """A comment is part of the document content."""
        commented = original_xml.replace("<PropertyGroup>", "<!-- note --><PropertyGroup>", 1)

        assert not ProjectDocument.parse(commented).structurally_equal(ProjectDocument.parse(original_xml))


class TestProjectCollection:
    """Tests for ProjectCollection."""

    def test_open_caches_documents(self, project_file: Path):
        """Opening the same path twice returns the same document."""
        collection = ProjectCollection()

        first = ProjectDocument.open(project_file, collection)
        second = collection.open(str(project_file))

        assert first is second
        assert len(collection) == 1
        assert project_file in collection

    def test_collections_are_independent(self, project_file: Path):
        """Each collection parses its own copy."""
        first = ProjectCollection().open(project_file)
        second = ProjectCollection().open(project_file)

        assert first is not second
        assert first.structurally_equal(second)

    def test_open_invalid_file_caches_nothing(self, tmp_path: Path):
        """Failed opens leave the collection empty."""
        path = tmp_path / "broken.proj"
        path.write_text("<Project>")
        collection = ProjectCollection()

        with pytest.raises(InvalidProjectFileError):
            collection.open(path)

        assert len(collection) == 0

    def test_unload_all(self, project_file: Path):
        """unload_all empties the collection."""
        collection = ProjectCollection()
        collection.open(project_file)

        collection.unload_all()

        assert len(collection) == 0
        assert collection.get(project_file) is None

    def test_isolated_unloads_on_error(self, project_file: Path):
        """An isolated collection is emptied even when the block raises."""
        with pytest.raises(RuntimeError):
            with ProjectCollection.isolated() as collection:
                collection.open(project_file)
                raise RuntimeError("boom")

        assert len(collection) == 0

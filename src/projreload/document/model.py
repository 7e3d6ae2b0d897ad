"""In-memory project definition document.

A project file is an XML document rooted at a ``<Project>`` element:

    <Project Sdk="Example.Sdk">
      <PropertyGroup>
        <Name>app</Name>
      </PropertyGroup>
      <ItemGroup>
        <Compile Include="src/$(Name).py" />
      </ItemGroup>
    </Project>

The document tracks whether its in-memory content has diverged from what was
last persisted. Content and the dirty flag only change through the methods on
ProjectDocument.
"""

import copy
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from projreload.errors import InvalidProjectFileError

if TYPE_CHECKING:
    from projreload.document.collection import ProjectCollection

logger = logging.getLogger(__name__)

PROJECT_TAG = "Project"
PROPERTY_GROUP_TAG = "PropertyGroup"
ITEM_GROUP_TAG = "ItemGroup"

XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'


def local_name(element: ET.Element) -> str | None:
    """Tag of an element without its namespace. None for comments and PIs."""
    if not isinstance(element.tag, str):
        return None
    return element.tag.rpartition("}")[2]


def namespace_of(element: ET.Element) -> str | None:
    if isinstance(element.tag, str) and element.tag.startswith("{"):
        return element.tag[1:].partition("}")[0]
    return None


def _elements_equal(left: ET.Element, right: ET.Element) -> bool:
    """Compare two elements by tag, attributes, text and children.

    Comments and processing instructions are part of the content and are
    compared like elements.
    """
    if left.tag != right.tag or left.attrib != right.attrib:
        return False
    if (left.text or "").strip() != (right.text or "").strip():
        return False
    if len(left) != len(right):
        return False
    return all(_elements_equal(a, b) for a, b in zip(left, right, strict=True))


class ProjectDocument:
    """The element tree of one project definition file."""

    def __init__(self, root: ET.Element, full_path: Path | None = None):
        if local_name(root) != PROJECT_TAG:
            raise InvalidProjectFileError(
                full_path,
                f"Root element must be <{PROJECT_TAG}>, found <{root.tag}>",
            )
        self._root = root
        self.full_path = full_path
        self._dirty = False

    def __repr__(self) -> str:
        return f"ProjectDocument({self.full_path!s}, children={len(self._root)}, dirty={self._dirty})"

    @classmethod
    def create(cls) -> "ProjectDocument":
        """Create an empty document that is not backed by a file."""
        return cls(ET.Element(PROJECT_TAG))

    @classmethod
    def parse(cls, text: str, full_path: Path | None = None) -> "ProjectDocument":
        """Parse XML text into a document.

        Raises:
            InvalidProjectFileError: If the text is not a well-formed project.
        """
        # Keep comments and processing instructions so saving does not drop them
        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True, insert_pis=True))
        try:
            root = ET.fromstring(text, parser=parser)
        except ET.ParseError as e:
            line, column = e.position
            raise InvalidProjectFileError(full_path, str(e), line, column) from e
        return cls(root, full_path)

    @classmethod
    def load(cls, path: Path) -> "ProjectDocument":
        """Read and parse a project file from disk."""
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise InvalidProjectFileError(path, f"Cannot read file: {e}") from e
        return cls.parse(text, path)

    @classmethod
    def open(cls, path: str | Path, collection: "ProjectCollection") -> "ProjectDocument":
        """Open a project file through a collection.

        The collection caches documents, so opening the same path twice in
        one collection returns the same instance.
        """
        return collection.open(path)

    # -- read access -------------------------------------------------------

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dirty

    @property
    def children(self) -> tuple[ET.Element, ...]:
        """Top-level elements, comments included, in document order."""
        return tuple(self._root)

    @property
    def attributes(self) -> dict[str, str]:
        return dict(self._root.attrib)

    @property
    def namespace(self) -> str | None:
        """Default XML namespace of the project, if the file declares one."""
        return namespace_of(self._root)

    def to_xml(self) -> str:
        """Serialize the document without touching the dirty flag."""
        root = copy.deepcopy(self._root)
        ET.indent(root)
        namespace = self.namespace
        if namespace is not None and all(
            namespace_of(el) == namespace for el in root.iter() if isinstance(el.tag, str)
        ):
            # Write the namespace as xmlns="..." instead of an ns0: prefix
            return ET.tostring(root, encoding="unicode", default_namespace=namespace)
        return ET.tostring(root, encoding="unicode")

    def structurally_equal(self, other: "ProjectDocument") -> bool:
        return _elements_equal(self._root, other._root)

    # -- mutation ----------------------------------------------------------

    def _mark_dirty(self) -> None:
        self._dirty = True

    def set_attribute(self, name: str, value: str) -> None:
        self._root.set(name, value)
        self._mark_dirty()

    def add_child(self, element: ET.Element) -> None:
        self._root.append(element)
        self._mark_dirty()

    def remove_child(self, element: ET.Element) -> None:
        self._root.remove(element)
        self._mark_dirty()

    def remove_all_children(self) -> None:
        del self._root[:]
        self._mark_dirty()

    def deep_copy_from(self, other: "ProjectDocument") -> None:
        """Replace this document's root, attributes and children with copies of other's.

        The root tag is copied too, so the namespace follows the source.
        Copies are built before anything is attached, so a failure while
        copying leaves this document as it was.
        """
        children = [copy.deepcopy(child) for child in other._root]
        attributes = dict(other._root.attrib)
        text = other._root.text

        self._root.tag = other._root.tag
        self._root.attrib.clear()
        self._root.attrib.update(attributes)
        self._root.text = text
        self._root[:] = children
        self._mark_dirty()

    def _qualified(self, name: str) -> str:
        namespace = self.namespace
        return f"{{{namespace}}}{name}" if namespace else name

    def _find_or_add(self, parent: ET.Element, name: str) -> ET.Element:
        for child in parent:
            if local_name(child) == name:
                return child
        return ET.SubElement(parent, self._qualified(name))

    def set_property(self, name: str, value: str) -> None:
        """Set a property, creating a PropertyGroup if the document has none."""
        group = self._find_or_add(self._root, PROPERTY_GROUP_TAG)
        prop = self._find_or_add(group, name)
        prop.text = value
        self._mark_dirty()

    def add_item(self, item_type: str, include: str) -> None:
        """Append an item to the first ItemGroup, creating one if needed."""
        group = self._find_or_add(self._root, ITEM_GROUP_TAG)
        ET.SubElement(group, self._qualified(item_type), {"Include": include})
        self._mark_dirty()

    # -- persistence -------------------------------------------------------

    def save(self, target: TextIO | None = None) -> None:
        """Write the document and clear the dirty flag.

        Files are written with an XML declaration; text sinks get the bare
        document.

        Args:
            target: Text sink to write to. Defaults to the document's file.
        """
        xml = self.to_xml()
        if target is None:
            if self.full_path is None:
                raise ValueError("Cannot save a document that has no file path")
            self.full_path.write_text(f"{XML_DECLARATION}\n{xml}\n", encoding="utf-8")
            logger.debug(f"Saved project document to {self.full_path}")
        else:
            target.write(xml)
        self._dirty = False

"""YAML frontmatter parsing for markdown files.

Frontmatter is an optional YAML mapping between ``---`` lines at the very
top of a document. Two keys are used:

- title: overrides the derived page title
- emoji: page icon

Unknown keys are ignored so documents can carry frontmatter for other tools.

Without frontmatter keys, the same settings may be given as an argument line
opening the document, e.g. ``--emoji 🚀 --title "Getting started"``. The line
is removed from the published content.
"""

import re
import shlex
from typing import Dict, Tuple
import yaml

from .errors import FrontmatterError
from .models import DocumentMetadata


class FrontmatterHandler:
    """Handles YAML frontmatter operations for markdown files."""

    # Regex pattern to match YAML frontmatter (between --- delimiters)
    FRONTMATTER_PATTERN = re.compile(
        r'^---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|$)',
        re.DOTALL
    )

    # First line of the form: --emoji 🚀 --title "Some title"
    ARGUMENT_LINE_PATTERN = re.compile(r'^\s*(--(?:title|emoji)\b[^\r\n]*)(?:\r?\n|$)')

    METADATA_KEYS = ('title', 'emoji')

    # Maximum allowed depth for YAML structures to prevent DoS attacks
    MAX_YAML_DEPTH = 10

    @classmethod
    def _validate_yaml_depth(cls, obj, current_depth: int = 0, max_depth: int = MAX_YAML_DEPTH) -> None:
        """Validate that YAML structure depth doesn't exceed maximum.

        Prevents YAML bomb DoS attacks from deeply nested structures.

        Raises:
            FrontmatterError: If depth exceeds maximum
        """
        if current_depth > max_depth:
            raise FrontmatterError(
                "<yaml>",
                f"YAML structure exceeds maximum depth of {max_depth}"
            )

        if isinstance(obj, dict):
            for value in obj.values():
                cls._validate_yaml_depth(value, current_depth + 1, max_depth)
        elif isinstance(obj, list):
            for item in obj:
                cls._validate_yaml_depth(item, current_depth + 1, max_depth)

    @classmethod
    def extract_frontmatter_and_content(cls, file_path: str, content: str) -> Tuple[dict, str]:
        """Split raw document text into frontmatter dict and markdown body.

        Args:
            file_path: Path used in error messages
            content: Full document text

        Returns:
            Tuple of (frontmatter_dict, markdown_content).
            Returns ({}, content) if no frontmatter found.

        Raises:
            FrontmatterError: If the frontmatter is not a valid YAML mapping
        """
        match = cls.FRONTMATTER_PATTERN.match(content)
        if not match:
            return {}, content

        frontmatter_str = match.group(1)
        markdown_content = content[match.end():]

        try:
            frontmatter = yaml.safe_load(frontmatter_str)
        except yaml.YAMLError as e:
            raise FrontmatterError(file_path, f"Invalid YAML syntax: {str(e)}")

        if frontmatter is None:
            return {}, markdown_content

        if not isinstance(frontmatter, dict):
            raise FrontmatterError(
                file_path,
                f"Frontmatter must be a YAML dictionary, got {type(frontmatter).__name__}"
            )

        try:
            cls._validate_yaml_depth(frontmatter)
        except FrontmatterError as e:
            raise FrontmatterError(file_path, e.message)

        return frontmatter, markdown_content

    @classmethod
    def extract_argument_line(cls, file_path: str, content: str) -> Tuple[Dict[str, str], str]:
        """Split a leading ``--title``/``--emoji`` argument line from the body.

        Returns:
            Tuple of (arguments, remaining content).
            Returns ({}, content) if the document does not open with one.

        Raises:
            FrontmatterError: If the line has an unknown option or a missing value
        """
        match = cls.ARGUMENT_LINE_PATTERN.match(content)
        if not match:
            return {}, content

        try:
            tokens = shlex.split(match.group(1))
        except ValueError as e:
            raise FrontmatterError(file_path, f"Invalid argument line: {e}")

        arguments: Dict[str, str] = {}
        index = 0
        while index < len(tokens):
            option, _, value = tokens[index].partition('=')
            key = option[2:] if option.startswith('--') else None
            if key not in cls.METADATA_KEYS:
                raise FrontmatterError(file_path, f"Unknown argument '{tokens[index]}'")
            if not value:
                index += 1
                if index >= len(tokens):
                    raise FrontmatterError(file_path, f"Argument '{option}' needs a value")
                value = tokens[index]
            arguments[key] = value
            index += 1

        return arguments, content[match.end():]

    @classmethod
    def parse(cls, file_path: str, content: str) -> Tuple[DocumentMetadata, str]:
        """Parse document metadata from frontmatter and an argument line.

        Frontmatter values win over argument line values.

        Args:
            file_path: Path to the file (for error messages)
            content: Full markdown content including frontmatter

        Returns:
            Tuple of (DocumentMetadata, markdown content without frontmatter)

        Raises:
            FrontmatterError: If frontmatter is malformed or a field has the wrong type
        """
        frontmatter, body = cls.extract_frontmatter_and_content(file_path, content)
        arguments, body = cls.extract_argument_line(file_path, body)

        metadata = DocumentMetadata()
        for key in cls.METADATA_KEYS:
            value = frontmatter.get(key)
            if value is None:
                value = arguments.get(key)
            if value is None:
                continue
            if not isinstance(value, (str, int, float)) or isinstance(value, bool):
                raise FrontmatterError(file_path, f"Field '{key}' must be a string")
            value = str(value).strip()
            if value:
                setattr(metadata, key, value)

        return metadata, body

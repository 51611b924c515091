"""Unit tests for page_operations.link_resolver module."""

from notation.content_converter.fingerprint import content_fingerprint
from notation.content_converter.notion_renderer import NotionRenderer
from notation.file_mapper.models import SourceDocument
from notation.page_operations.errors import BrokenInternalLink
from notation.page_operations.link_resolver import LinkResolver
from tests.helpers.page_trees import page, sample_tree, tree

SETUP_ID = "2b3c4d5e-6f70-4182-93a4-b5c6d7e8f901"


def find(root, path):
    return next(node for node in root.walk() if node.path == path)


class TestLookup:
    """Test cases for path lookup and resolution."""

    def test_lookup_by_page_path(self):
        root = sample_tree()
        resolver = LinkResolver(root)
        assert resolver.lookup("guide/setup.md") is find(root, "guide/setup.md")

    def test_directory_reachable_through_index_file(self):
        guide = page("guide", "guide", children=[page("A", "guide/a.md", "a")])
        guide.document = SourceDocument(path="guide/index.md", raw_text="")
        root = tree(page("Root", ".", "root", children=[guide]))

        resolver = LinkResolver(root)

        assert resolver.lookup("guide/index.md") is guide
        assert resolver.lookup("guide") is guide

    def test_resolve_none_until_remote_id_known(self):
        root = sample_tree()
        resolver = LinkResolver(root)

        assert resolver.resolve("guide/setup.md") is None
        find(root, "guide/setup.md").remote_id = SETUP_ID
        assert resolver.resolve("guide/setup.md") == SETUP_ID

    def test_resolve_unknown_path(self):
        assert LinkResolver(sample_tree()).resolve("nope.md") is None


class TestValidate:
    """Test cases for link validation before any write."""

    def test_valid_links_pass(self):
        root = sample_tree()
        assert LinkResolver(root).validate(root) == []
        assert not any(node.failed for node in root.walk())

    def test_unknown_target_recorded_on_that_page_only(self):
        root = tree(page("Root", ".", "root", children=[
            page("A", "a.md", "See [missing](missing.md) and [b](b.md)."),
            page("B", "b.md", "b"),
        ]))

        errors = LinkResolver(root).validate(root)

        assert len(errors) == 1
        assert isinstance(errors[0], BrokenInternalLink)
        assert errors[0].targets == ["missing.md"]
        assert find(root, "a.md").link_error is errors[0]
        assert not find(root, "a.md").failed
        assert find(root, "b.md").link_error is None

    def test_already_failed_pages_not_revalidated(self):
        root = tree(page("Root", ".", "root", children=[page("A", "a.md", "[x](missing.md)")]))
        earlier = RuntimeError("parse failed")
        find(root, "a.md").failure = earlier

        assert LinkResolver(root).validate(root) == []
        assert find(root, "a.md").failure is earlier


class TestFollowUpUpdates:
    """Test cases for the second link pass."""

    def _published(self, root, renderer, resolver):
        """Simulate a first pass where setup had no id yet when intro was sent."""
        intro = find(root, "guide/intro.md")
        intro.remote_id = "intro-id"
        intro.sent_fingerprint = content_fingerprint(renderer.render(intro.blocks, resolver.resolve))
        setup = find(root, "guide/setup.md")
        setup.remote_id = SETUP_ID
        setup.sent_fingerprint = content_fingerprint(renderer.render(setup.blocks, resolver.resolve))
        return intro, setup

    def test_stale_link_scheduled_for_update(self):
        root = sample_tree()
        renderer = NotionRenderer()
        resolver = LinkResolver(root)
        intro, setup = self._published(root, renderer, resolver)

        updates = resolver.follow_up_updates([intro, setup], renderer)

        assert len(updates) == 1
        assert updates[0].node is intro
        assert updates[0].remote_id == "intro-id"
        assert updates[0].content is True
        expected = content_fingerprint(renderer.render(intro.blocks, resolver.resolve))
        assert updates[0].fingerprint == expected

    def test_nothing_when_links_already_resolved(self):
        root = sample_tree()
        renderer = NotionRenderer()
        resolver = LinkResolver(root)
        intro, setup = self._published(root, renderer, resolver)
        intro.sent_fingerprint = content_fingerprint(renderer.render(intro.blocks, resolver.resolve))

        assert resolver.follow_up_updates([intro, setup], renderer) == []

    def test_pages_without_sent_content_ignored(self):
        root = sample_tree()
        intro = find(root, "guide/intro.md")
        intro.remote_id = "intro-id"

        assert LinkResolver(root).follow_up_updates([intro], NotionRenderer()) == []

"""Integration tests for notation.

These tests run complete publish and clear flows: real filesystem corpora in
temporary directories, the real parsing, reconciliation and execution
layers, and the in-memory Notion workspace from tests.helpers.fake_notion in
place of the HTTP session.
"""

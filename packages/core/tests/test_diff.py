"""Tests for splitting a multi-file diff into per-file fragments."""

from patchwise_core.diff import DiffFragment, join_fragments, normalize_path, split_diff

A_BLOCK = """diff --git a/src/a.py b/src/a.py
index 83db48f..bf269f4 100644
--- a/src/a.py
+++ b/src/a.py
@@ -1,3 +1,4 @@
 import os
+import sys
 
 def main():"""

B_BLOCK = """diff --git a/src/b.py b/src/b.py
new file mode 100644
index 0000000..e69de29
--- /dev/null
+++ b/src/b.py
@@ -0,0 +1,2 @@
+def helper():
+    return 1"""

C_BLOCK = """diff --git a/docs/old.md b/docs/old.md
deleted file mode 100644
index e69de29..0000000
--- a/docs/old.md
+++ /dev/null
@@ -1 +0,0 @@
-# Old docs"""

THREE_FILE_DIFF = "\n".join([A_BLOCK, B_BLOCK, C_BLOCK]) + "\n"


class TestSplitDiff:
    def test_one_fragment_per_file_in_diff_order(self):
        fragments = split_diff(THREE_FILE_DIFF)
        assert [f.path for f in fragments] == ["src/a.py", "src/b.py", "docs/old.md"]

    def test_fragments_keep_their_headers(self):
        fragments = split_diff(THREE_FILE_DIFF)
        assert fragments[0].raw_text == A_BLOCK
        assert fragments[1].raw_text == B_BLOCK
        assert fragments[1].raw_text.startswith("diff --git a/src/b.py b/src/b.py\n")

    def test_join_restores_original_text(self):
        assert join_fragments(split_diff(THREE_FILE_DIFF)) == THREE_FILE_DIFF

    def test_empty_diff_has_no_fragments(self):
        assert split_diff("") == []

    def test_text_without_file_headers_has_no_fragments(self):
        assert split_diff("just some text\nwith no diff in it\n") == []

    def test_added_file_uses_new_side_path(self):
        (fragment,) = split_diff(B_BLOCK)
        assert fragment.path == "src/b.py"

    def test_deleted_file_uses_old_side_path(self):
        (fragment,) = split_diff(C_BLOCK)
        assert fragment.path == "docs/old.md"

    def test_header_only_rename_block(self):
        diff = (
            "diff --git a/lib/old_name.py b/lib/new_name.py\n"
            "similarity index 100%\n"
            "rename from lib/old_name.py\n"
            "rename to lib/new_name.py\n" + A_BLOCK
        )
        fragments = split_diff(diff)
        assert [f.path for f in fragments] == ["lib/new_name.py", "src/a.py"]
        assert fragments[0].raw_text.endswith("rename to lib/new_name.py")

    def test_binary_block_without_hunks(self):
        diff = "diff --git a/img/logo.png b/img/logo.png\nindex 1111111..2222222\nBinary files differ\n" + A_BLOCK
        fragments = split_diff(diff)
        assert [f.path for f in fragments] == ["img/logo.png", "src/a.py"]

    def test_removed_line_starting_with_double_dash_stays_in_hunk(self):
        sql = (
            "diff --git a/db/schema.sql b/db/schema.sql\n"
            "--- a/db/schema.sql\n"
            "+++ b/db/schema.sql\n"
            "@@ -1,2 +1,1 @@\n"
            "--- legacy comment\n"
            " CREATE TABLE users (id INTEGER);"
        )
        diff = sql + "\n" + A_BLOCK
        fragments = split_diff(diff)
        assert [f.path for f in fragments] == ["db/schema.sql", "src/a.py"]
        assert fragments[0].raw_text == sql

    def test_plain_unified_diff_without_git_headers(self):
        diff = (
            "--- a/one.py\t2024-01-01 00:00:00\n"
            "+++ b/one.py\t2024-01-02 00:00:00\n"
            "@@ -1 +1 @@\n"
            "-x = 1\n"
            "+x = 2\n"
            "--- a/two.py\n"
            "+++ b/two.py\n"
            "@@ -1 +1 @@\n"
            "-y = 1\n"
            "+y = 2\n"
        )
        fragments = split_diff(diff)
        assert [f.path for f in fragments] == ["one.py", "two.py"]
        assert join_fragments(fragments) == diff

    def test_duplicate_path_keeps_last_block_at_first_position(self, caplog):
        second_a = A_BLOCK.replace("+import sys", "+import json")
        diff = "\n".join([A_BLOCK, B_BLOCK, second_a])
        with caplog.at_level("WARNING"):
            fragments = split_diff(diff)
        assert [f.path for f in fragments] == ["src/a.py", "src/b.py"]
        assert "+import json" in fragments[0].raw_text
        assert "more than one block" in caplog.text

    def test_preamble_before_first_header_is_dropped(self):
        diff = "From 1234 Mon Sep 17 00:00:00 2001\nSubject: fix\n\n" + A_BLOCK
        (fragment,) = split_diff(diff)
        assert fragment.path == "src/a.py"
        assert fragment.raw_text == A_BLOCK

    def test_path_with_spaces(self):
        diff = (
            "diff --git a/docs/user guide.py b/docs/user guide.py\n"
            "--- a/docs/user guide.py\n"
            "+++ b/docs/user guide.py\n"
            "@@ -1 +1 @@\n"
            "-a\n"
            "+b"
        )
        (fragment,) = split_diff(diff)
        assert fragment.path == "docs/user guide.py"


class TestJoinFragments:
    def test_preserves_given_order(self):
        fragments = [DiffFragment("b.py", "B"), DiffFragment("a.py", "A")]
        assert join_fragments(fragments) == "B\nA"

    def test_empty_list(self):
        assert join_fragments([]) == ""


class TestNormalizePath:
    def test_strips_side_prefix(self):
        assert normalize_path("b/src/app.py") == "src/app.py"

    def test_strips_timestamp_and_quotes(self):
        assert normalize_path('"a/my file.py"\t2024-01-01 00:00:00') == "my file.py"

    def test_strips_leading_dot_slash(self):
        assert normalize_path("./src/app.py") == "src/app.py"

    def test_plain_path_unchanged(self):
        assert normalize_path("src/app.py") == "src/app.py"

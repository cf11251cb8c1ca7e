"""Tests for file filtering utilities."""

from patchwise_core.utils.code import is_code_file, is_excluded, should_review


class TestIsCodeFile:
    def test_python_file_is_code(self):
        assert is_code_file("app/services/user.py") is True

    def test_js_file_is_code(self):
        assert is_code_file("src/components/Button.tsx") is True

    def test_image_is_not_code(self):
        assert is_code_file("assets/logo.png") is False

    def test_font_is_not_code(self):
        assert is_code_file("static/fonts/Inter.woff2") is False

    def test_archive_is_not_code(self):
        assert is_code_file("dist/bundle.tar.gz") is False

    def test_lock_file_is_not_code(self):
        assert is_code_file("poetry.lock") is False

    def test_case_insensitive(self):
        assert is_code_file("image.PNG") is False


class TestIsExcluded:
    def test_glob_on_basename(self):
        assert is_excluded("static/app.min.js", ["*.min.js"]) is True

    def test_glob_on_full_path(self):
        assert is_excluded("src/gen/models.py", ["src/gen/*.py"]) is True

    def test_directory_pattern(self):
        assert is_excluded("app/migrations/0001_initial.py", ["migrations/"]) is True
        assert is_excluded("migrations/0001_initial.py", ["migrations"]) is True

    def test_directory_pattern_does_not_match_prefix_of_name(self):
        assert is_excluded("src/vendored.py", ["vendor/"]) is False

    def test_no_patterns(self):
        assert is_excluded("src/app.py", []) is False


def test_should_review_combines_both_filters():
    assert should_review("src/app.py") is True
    assert should_review("src/app.py", ["src/"]) is False
    assert should_review("docs/logo.svg") is False

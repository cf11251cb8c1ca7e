from __future__ import annotations

from github import Github


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def get_diff(pr):
    return pr.get_files()


def _file_block(f) -> str:
    new = f.filename
    old = getattr(f, "previous_filename", None) or new
    lines = [f"diff --git a/{old} b/{new}"]
    if f.status == "renamed" and old != new:
        lines += [f"rename from {old}", f"rename to {new}"]
    if f.patch:
        old_side = "/dev/null" if f.status == "added" else f"a/{old}"
        new_side = "/dev/null" if f.status == "removed" else f"b/{new}"
        lines += [f"--- {old_side}", f"+++ {new_side}", f.patch.rstrip("\n")]
    elif getattr(f, "sha", None):
        # GitHub omits the patch for binary and oversized files; the blob SHA
        # still changes with the content, so the fragment fingerprint does too.
        lines.append(f"index {f.sha}")
    return "\n".join(lines)


def build_unified_diff(files) -> str:
    """Reassemble a git-style multi-file diff from PyGithub File objects.

    GitHub's file list carries each file's hunks without headers; the headers
    are rebuilt here so the diff can be segmented like any `git diff` output.
    """
    blocks = [_file_block(f) for f in files if f.filename]
    if not blocks:
        return ""
    return "\n".join(blocks) + "\n"


def get_unified_diff(pr) -> str:
    return build_unified_diff(get_diff(pr))

"""PR review template and artifact reads."""

from typing import List, Optional

from ...services.exceptions import ValidationError
from ...services.git_service import GitPrimitives
from ...utils.fs import read_text_if_exists
from .pr_meta import PrPaths

AUTO_SUMMARY_BEGIN = "<!-- BEGIN AUTO SUMMARY -->"
AUTO_SUMMARY_END = "<!-- END AUTO SUMMARY -->"
REVIEW_REQUIRED_SECTIONS = ["## Summary", "## Checklist", "## Handoff Notes"]


def render_review_template(author: str, created_at: str, branch: str) -> str:
    """Render a fresh ``review.md``."""
    return "\n".join(
        [
            "# PR Review",
            "",
            f"Opened by {author} on {created_at}",
            f"Branch: {branch}",
            "",
            "## Summary",
            "",
            "- ",
            "",
            "## Checklist",
            "",
            "- [ ] Tests added/updated",
            "- [ ] Lint/format passes",
            "- [ ] Verify passed",
            "- [ ] Docs updated (if needed)",
            "",
            "## Handoff Notes",
            "",
            "<!-- Add review notes here. -->",
            "",
            AUTO_SUMMARY_BEGIN,
            AUTO_SUMMARY_END,
            "",
        ]
    )


def update_auto_summary_block(text: str, summary: str) -> str:
    """Replace the text between the auto summary markers (appending them if absent)."""
    start = text.find(AUTO_SUMMARY_BEGIN)
    end = text.find(AUTO_SUMMARY_END)
    if start == -1 or end == -1 or end < start:
        return f"{text.rstrip()}\n\n{AUTO_SUMMARY_BEGIN}\n{summary}\n{AUTO_SUMMARY_END}\n"
    before = text[: start + len(AUTO_SUMMARY_BEGIN)]
    return f"{before}\n{summary}\n{text[end:]}"


def validate_review_contents(review: str) -> List[str]:
    """List structural problems of a review document."""
    errors = [f"Missing section: {section}" for section in REVIEW_REQUIRED_SECTIONS if section not in review]
    if AUTO_SUMMARY_BEGIN not in review:
        errors.append("Missing auto summary start marker")
    if AUTO_SUMMARY_END not in review:
        errors.append("Missing auto summary end marker")
    return errors


def read_pr_artifact(paths: PrPaths, name: str, branch: str, git: GitPrimitives) -> Optional[str]:
    """Read an artifact from the working tree, falling back to the branch tip."""
    path = paths.pr_dir / name
    text = read_text_if_exists(path)
    if text is not None:
        return text
    return git.show_file(branch, paths.relative(path))


def read_and_validate_pr_artifacts(paths: PrPaths, branch: str, git: GitPrimitives) -> Optional[str]:
    """Check the PR artifacts are present and well formed.

    Returns:
        The verify log text

    Raises:
        ValidationError: Listing every missing or malformed artifact
    """
    errors: List[str] = []
    if read_pr_artifact(paths, paths.diffstat.name, branch, git) is None:
        errors.append(f"Missing {paths.relative(paths.diffstat)}")
    verify_log = read_pr_artifact(paths, paths.verify_log.name, branch, git)
    if verify_log is None:
        errors.append(f"Missing {paths.relative(paths.verify_log)}")
    review = read_pr_artifact(paths, paths.review.name, branch, git)
    if review is not None:
        errors.extend(validate_review_contents(review))
    if errors:
        raise ValidationError("\n".join(errors))
    return verify_log

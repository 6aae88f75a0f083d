import os
import subprocess

VERSION = "0.3.0"
SITEBLOCK = "siteblock " + VERSION


def get_dev_version() -> str:
    """
    VERSION, plus the distance to the last tag and the commit hash when
    running from a git checkout that is ahead of a release.
    """
    repo = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    try:
        out = subprocess.run(
            ["git", "describe", "--tags", "--long"],
            cwd=repo,
            capture_output=True,
            check=True,
            text=True,
        ).stdout
        _, distance, commit = out.strip().rsplit("-", 2)
    except (OSError, subprocess.CalledProcessError, ValueError):
        return VERSION
    if distance == "0":
        return VERSION
    return f"{VERSION} (+{distance}, commit {commit.lstrip('g')[:7]})"


if __name__ == "__main__":  # pragma: no cover
    print(VERSION)

# betterbuild_workflow.py
# Build-and-release workflow for betterbuild itself: clean, lint, test,
# package, and publish to a package index.
from __future__ import annotations

import shutil

from betterbuild import build, param, param_equals, param_set, sh, target, tool_available


def clean(ctx):
    for name in ("build", "dist", ".pytest_cache"):
        shutil.rmtree(ctx.root / name, ignore_errors=True)


def workflow():
    return build(
        target(
            "clean",
            action=clean,
            before=["restore"],
            description="Remove build outputs",
        ),
        target(
            "restore",
            sh("Install package", "python -m pip install -e '.[test]'"),
            description="Install the package and its test dependencies",
        ),
        target(
            "lint",
            sh("Ruff check", "ruff check src tests"),
            depends_on=["restore"],
            only_when=[tool_available("ruff")],
        ),
        target(
            "test",
            sh("Run pytest", "python -m pytest -q"),
            depends_on=["restore"],
            after=["lint"],
        ),
        target(
            "pack",
            sh("Build sdist and wheel", "python -m build --outdir dist"),
            depends_on=["test"],
        ),
        target(
            "release",
            sh("Upload", 'python -m twine upload --repository-url "$INDEX_URL" -u __token__ -p "$INDEX_TOKEN" dist/*'),
            depends_on=["pack"],
            requires=[
                param_set("index_url"),
                param_set("index_token"),
                param_equals("configuration", "Release"),
            ],
            description="Publish dist/* to the package index",
        ),
        parameters=[
            param("configuration", "Debug", help="Debug (local) or Release (server)"),
            param("index_url", "https://upload.pypi.org/legacy/", help="Package index upload URL"),
            param("index_token", secret=True, help="API token for the package index"),
        ],
        default="test",
    )

"""Noxfile for synthkit.

Provides automated sessions for:
- Linting and formatting
- Testing with coverage
- Type checking
- Package building
"""

import nox

# Python versions to test against
PYTHON_VERSIONS = ["3.11", "3.12"]

PACKAGE_DIR = "synthkit"
TESTS_DIR = "tests"


@nox.session(python=PYTHON_VERSIONS)
def tests(session):
    """Run the test suite with coverage."""
    session.install(".[test]")

    session.run(
        "pytest",
        "--cov=" + PACKAGE_DIR,
        "--cov-report=term-missing",
        "--cov-fail-under=80",
        TESTS_DIR,
        *session.posargs,
    )


@nox.session(python=PYTHON_VERSIONS)
def lint(session):
    """Run linting with ruff."""
    session.install("ruff")
    session.run("ruff", "check", ".")


@nox.session(python=PYTHON_VERSIONS)
def format(session):
    """Format code with black and ruff."""
    session.install("black", "ruff")
    session.run("black", ".")
    session.run("ruff", "check", "--fix", ".")


@nox.session(python=PYTHON_VERSIONS)
def typecheck(session):
    """Run type checking with mypy."""
    session.install(".")
    session.install("mypy", "types-PyYAML")
    session.run("mypy", PACKAGE_DIR)


@nox.session(python=PYTHON_VERSIONS)
def package(session):
    """Build the package."""
    session.install("build")
    session.run("python", "-m", "build")


@nox.session(python=PYTHON_VERSIONS)
def sample(session):
    """Synthesize the bundled sample document."""
    session.install(".")
    session.run("synthkit", "samples/cross_account.yml", "--format", "yaml")


@nox.session
def clean(session):
    """Clean up build artifacts and cache files."""
    import shutil
    from pathlib import Path

    clean_dirs = [
        ".pytest_cache",
        ".coverage",
        "htmlcov",
        "dist",
        "build",
        "*.egg-info",
        ".mypy_cache",
        ".ruff_cache",
        "__pycache__",
    ]

    for pattern in clean_dirs:
        for path in Path(".").glob(f"**/{pattern}"):
            if path.is_dir():
                session.log(f"Removing directory: {path}")
                shutil.rmtree(path)
            elif path.is_file():
                session.log(f"Removing file: {path}")
                path.unlink()


# Default session when running `nox` without arguments
nox.options.sessions = ["tests", "lint", "typecheck"]

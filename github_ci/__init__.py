"""github-ci: keep GitHub Actions references in workflows up to date."""

__version__ = "0.1.0"

"""sitedeploy — production deployment pipeline for builder-made websites."""

__version__ = "0.1.0"

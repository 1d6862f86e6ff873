"""Expertise - per (person, topic) expert scores."""

from himind.features.expertise.service import ExpertiseService

__all__ = ["ExpertiseService"]

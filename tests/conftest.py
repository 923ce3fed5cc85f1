"""Shared fixtures for allocation and drag tests.

2024-01-01 is a Monday; most scenarios are laid out on that week.
"""

from datetime import date

import pytest

from timeline_allocator.models import Project, standard_settings


@pytest.fixture
def settings():
    """Monday to Friday, eight hours a day."""
    return standard_settings(8.0)


@pytest.fixture
def make_project():
    def _make(
        project_id="p1",
        start=date(2024, 1, 1),
        end=date(2024, 1, 5),
        hours=40.0,
        **kwargs,
    ):
        return Project(
            id=project_id,
            name=kwargs.pop("name", f"Project {project_id}"),
            start_date=start,
            end_date=end,
            estimated_hours=hours,
            **kwargs,
        )

    return _make

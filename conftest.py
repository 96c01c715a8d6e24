# conftest.py
import pytest
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from survey_core.common.permissions import ALL_ROLES, ROLE_ADMIN, ROLE_EDITOR, ROLE_READER
from survey_core.reports.fixtures import seed_reports
from survey_core.reports.models import Report
from survey_core.tests.helpers import client_for, make_report, make_user


@pytest.fixture
def roles(db):
    return {name: Group.objects.get_or_create(name=name)[0] for name in ALL_ROLES}


@pytest.fixture
def reader(db, roles):
    return make_user("reader1", ROLE_READER)


@pytest.fixture
def editor(db, roles):
    return make_user("editor1", ROLE_EDITOR)


@pytest.fixture
def admin(db, roles):
    return make_user("admin1", ROLE_ADMIN)


@pytest.fixture
def reader_client(reader):
    return client_for(reader)


@pytest.fixture
def editor_client(editor):
    return client_for(editor)


@pytest.fixture
def admin_client(admin):
    return client_for(admin)


@pytest.fixture
def anon_client():
    return APIClient()


@pytest.fixture
def sample_reports(db):
    """
    The five demo surveys, keyed by id.
    """
    seed_reports()
    return {str(r.id): r for r in Report.objects.all()}


@pytest.fixture
def report(db):
    """
    A fresh compliant report at version 1.
    """
    return make_report()

import pytest
from decimal import Decimal
import uuid

from architrack import create_app
from architrack.database import get_session, create_all, drop_all
from architrack.models import Project, QuantityTable, QuantityGroup, QuantityItem


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestingConfig')
    app.config['TESTING'] = True
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session on a freshly created schema."""
    create_all()
    session = get_session()
    yield session
    session.rollback()
    session.remove()
    drop_all()


@pytest.fixture(scope='function')
def project(session):
    """Create test project."""
    suffix = str(uuid.uuid4())[:8]
    project = Project(name=f'Test Project {suffix}')
    session.add(project)
    session.commit()
    session.refresh(project)
    session.expunge(project)
    return project


@pytest.fixture(scope='function')
def other_project(session):
    """Create a second project for ownership checks."""
    project = Project(name='Other Project')
    session.add(project)
    session.commit()
    session.refresh(project)
    session.expunge(project)
    return project


def _item(index, custom_category=None, work_type=None, name=None, specification=None, unit=None, quantity='0'):
    return QuantityItem(
        custom_category=custom_category,
        work_type=work_type,
        name=name,
        specification=specification,
        unit=unit,
        quantity=Decimal(str(quantity)),
        display_order=index
    )


def build_quantity_table(session, project, groups, name='Quantity Table'):
    """
    Persist a quantity table.

    ``groups`` is a list of groups, each a list of item keyword dicts.
    """
    table = QuantityTable(project_id=project.id, name=name)
    for group_index, items in enumerate(groups):
        group = QuantityGroup(name=f'Group {group_index + 1}', display_order=group_index)
        group.items = [_item(index, **fields) for index, fields in enumerate(items)]
        table.groups.append(group)
    session.add(table)
    session.commit()
    session.refresh(table)
    return table


@pytest.fixture(scope='function')
def quantity_table_factory(session, project):
    """Factory: ``quantity_table_factory(groups, name=..., owner=...)``."""
    def factory(groups, name='Quantity Table', owner=None):
        return build_quantity_table(session, owner or project, groups, name=name)
    return factory


@pytest.fixture(scope='function')
def quantity_table(quantity_table_factory):
    """Two groups, five items, three distinct group keys."""
    return quantity_table_factory([
        [
            {'custom_category': 'Structure', 'work_type': 'Concrete', 'name': 'Footing',
             'specification': 'Fc24', 'unit': 'm3', 'quantity': '12.50'},
            {'custom_category': 'Structure', 'work_type': 'Concrete', 'name': 'Footing',
             'specification': 'Fc24', 'unit': 'm3', 'quantity': '7.25'},
            {'custom_category': None, 'work_type': 'Formwork', 'name': 'Panel',
             'specification': None, 'unit': 'm2', 'quantity': '30'},
        ],
        [
            {'custom_category': '', 'work_type': 'Formwork', 'name': 'Panel',
             'specification': '', 'unit': 'm2', 'quantity': '0.75'},
            {'custom_category': 'Finish', 'work_type': 'Paint', 'name': 'Wall',
             'specification': 'EP', 'unit': 'm2', 'quantity': '100.10'},
        ],
    ], name='Main Building')


@pytest.fixture(scope='function')
def wide_quantity_table(quantity_table_factory):
    """60 items with distinct keys."""
    return quantity_table_factory([
        [
            {'custom_category': 'Structure', 'work_type': 'Steel', 'name': f'Beam {index:02d}',
             'specification': 'SS400', 'unit': 't', 'quantity': '1.5'}
            for index in range(60)
        ]
    ], name='Steel Frame')


@pytest.fixture(scope='function')
def authenticated_client(client):
    """Client whose session carries a user id from the identity provider."""
    with client.session_transaction() as sess:
        sess['user_id'] = 'user-1'
    return client
